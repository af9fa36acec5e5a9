from typing import Optional, Tuple


def parse_sid(sid: str) -> Optional[Tuple[str, str, str, str]]:
    """Split a miniSEED source id (FDSN, underscore or dotted) into NSLC codes."""
    if not sid:
        return None

    cleaned = sid[5:] if sid.startswith("FDSN:") else sid

    if "_" in cleaned:
        parts = cleaned.split("_")
        if len(parts) >= 4:
            net, sta, loc = parts[:3]
            # FDSN ids carry band/source/subsource as separate fields.
            chan = "".join(parts[3:])
            return (net, sta, loc, chan) if chan else None
        return None

    if "." in cleaned:
        parts = cleaned.split(".")
        if len(parts) >= 4:
            net, sta, loc, chan = parts[:4]
            return (net, sta, loc, chan) if chan else None

    return None


def parse_station_key(text: str) -> Optional[Tuple[str, str, str]]:
    """Parse ``NET.STA`` or ``NET.STA.LOC`` into a station key."""
    if not text:
        return None
    parts = text.strip().split(".")
    if len(parts) == 2:
        net, sta = parts
        loc = ""
    elif len(parts) == 3:
        net, sta, loc = parts
    else:
        return None
    if not net or not sta:
        return None
    return net, sta, loc
