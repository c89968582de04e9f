import json


def notices(peer):
    """Messages of the status frames queued for a peer"""
    return [json.loads(f.data)["message"] for f in peer.outbound.pending() if f.droppable]


def transfers(peer):
    """Queued metadata/binary frames, with metadata decoded"""
    return [
        json.loads(f.data) if f.is_text else f.data
        for f in peer.outbound.pending()
        if not f.droppable
    ]
