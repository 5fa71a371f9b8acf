"""Extractor: read capture date and GPS position from uploaded image bytes.

Decoding prefers piexif on the raw bytes, then Pillow (with the HEIF opener
registered) to find the EXIF block inside other containers, then exifread.
Each stage only fills tags the earlier ones left missing. Nothing here raises
to the caller: undecodable input yields the ``unknown-date`` sentinel with no GPS.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
import io
import logging
import math
import numbers
import re
from typing import Any, Dict, Mapping, Optional

import exifread
import piexif
import pillow_heif
from PIL import Image

from .errors import MetadataDecodeError
from .models import ExtractedMetadata, GpsBucket, UNKNOWN_DATE

pillow_heif.register_heif_opener()

# Resolution order for the capture month
DATE_TAGS = ("DateTimeOriginal", "CreateDate", "DateTime")

_EXIF_DATE = re.compile(r"^\s*(\d{4}):(\d{2})")
# Cameras without a clock write "0000:00:00 00:00:00"
_BLANK_DATE = re.compile(r"^[0\s:\-]*$")
_GPS_STEP = Decimal("0.01")

_EXIFREAD_DATE_TAGS = {
    "EXIF DateTimeOriginal": "DateTimeOriginal",
    "EXIF DateTimeDigitized": "CreateDate",
    "Image DateTime": "DateTime",
}


def _clean_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii", errors="ignore")
    return str(value).replace("\x00", "").strip()


def _dms_to_decimal(dms, ref):
    # dms is a tuple of tuples like ((deg_num, deg_den), (min_num, min_den), (sec_num, sec_den))
    def to_float(t):
        num, den = t
        return float(num) / float(den) if den else float(num)

    deg = to_float(dms[0])
    minute = to_float(dms[1])
    sec = to_float(dms[2])
    dec = deg + (minute / 60.0) + (sec / 3600.0)
    if ref in ("S", "W"):
        dec = -dec
    return dec


def _to_float_from_ratio(val):
    # val can be exifread.utils.Ratio or a string like '12/1'
    try:
        s = str(val)
        if "/" in s:
            num, den = s.split("/")
            return float(num) / float(den) if float(den) != 0 else float(num)
        return float(s)
    except (TypeError, ValueError):
        return None


def _dms_from_ratios(values):
    parts = [_to_float_from_ratio(x) for x in values]
    if len(parts) >= 3 and None not in parts[:3]:
        deg, minute, sec = parts[0], parts[1], parts[2]
        return deg + (minute / 60.0) + (sec / 3600.0)
    return None


def _has_exif_signature(data: bytes) -> bool:
    """True when piexif can parse ``data`` as bytes rather than as a filename."""
    return (
        data[:2] == b"\xff\xd8"
        or data[:4] in (b"II*\x00", b"MM\x00*")
        or (data[:4] == b"RIFF" and data[8:12] == b"WEBP")
        or data[:4] == b"Exif"
    )


def _tags_from_piexif(exif: Dict) -> Dict[str, Any]:
    tags: Dict[str, Any] = {}
    zeroth = exif.get("0th") or {}
    exif_ifd = exif.get("Exif") or {}
    gps_ifd = exif.get("GPS") or {}

    for name, value in (
        ("DateTimeOriginal", exif_ifd.get(piexif.ExifIFD.DateTimeOriginal)),
        ("CreateDate", exif_ifd.get(piexif.ExifIFD.DateTimeDigitized)),
        ("DateTime", zeroth.get(piexif.ImageIFD.DateTime)),
    ):
        if value:
            tags[name] = _clean_text(value)

    gps_lat = gps_ifd.get(piexif.GPSIFD.GPSLatitude)
    gps_lon = gps_ifd.get(piexif.GPSIFD.GPSLongitude)
    if gps_lat and gps_lon:
        try:
            lat = _dms_to_decimal(gps_lat, _clean_text(gps_ifd.get(piexif.GPSIFD.GPSLatitudeRef)))
            lon = _dms_to_decimal(gps_lon, _clean_text(gps_ifd.get(piexif.GPSIFD.GPSLongitudeRef)))
        except (TypeError, ValueError, IndexError):
            logging.debug("Ignoring malformed GPS rationals: %r / %r", gps_lat, gps_lon)
        else:
            tags["GPSLatitude"] = lat
            tags["GPSLongitude"] = lon
    return tags


def _read_piexif(data: bytes) -> Dict[str, Any]:
    if not _has_exif_signature(data):
        raise MetadataDecodeError("not a JPEG/TIFF/WebP/Exif payload")
    return _tags_from_piexif(piexif.load(data))


def _read_pillow(data: bytes) -> Dict[str, Any]:
    with Image.open(io.BytesIO(data)) as img:
        exif_bytes = img.info.get("exif")
        if not exif_bytes:
            exif = img.getexif()
            exif_bytes = exif.tobytes() if len(exif) else None
    if not exif_bytes or not _has_exif_signature(exif_bytes):
        return {}
    return _tags_from_piexif(piexif.load(exif_bytes))


def _read_exifread(data: bytes) -> Dict[str, Any]:
    raw = exifread.process_file(io.BytesIO(data), details=False)
    if not raw:
        raise MetadataDecodeError("exifread found no tags")

    tags: Dict[str, Any] = {}
    for source, name in _EXIFREAD_DATE_TAGS.items():
        if source in raw:
            tags[name] = str(raw[source])

    if "GPS GPSLatitude" in raw and "GPS GPSLongitude" in raw:
        lat = _dms_from_ratios(raw["GPS GPSLatitude"].values)
        lon = _dms_from_ratios(raw["GPS GPSLongitude"].values)
        lat_ref = str(raw["GPS GPSLatitudeRef"]) if "GPS GPSLatitudeRef" in raw else None
        lon_ref = str(raw["GPS GPSLongitudeRef"]) if "GPS GPSLongitudeRef" in raw else None
        if lat is not None and lon is not None:
            if lat_ref and lat_ref.upper().startswith("S"):
                lat = -lat
            if lon_ref and lon_ref.upper().startswith("W"):
                lon = -lon
            tags["GPSLatitude"] = lat
            tags["GPSLongitude"] = lon
    return tags


def _is_complete(tags: Mapping[str, Any]) -> bool:
    return bool(tags.get("DateTimeOriginal")) and "GPSLatitude" in tags


def read_tags(data: bytes) -> Dict[str, Any]:
    """Decode ``data`` into a flat tag dictionary.

    Keys are ``DateTimeOriginal``, ``CreateDate``, ``DateTime`` (text) and
    ``GPSLatitude``/``GPSLongitude`` (signed decimal degrees). Raises
    MetadataDecodeError when no decoder understood the bytes.
    """
    if not data:
        raise MetadataDecodeError("empty upload")

    tags: Dict[str, Any] = {}
    decoded = False
    for reader in (_read_piexif, _read_pillow, _read_exifread):
        if _is_complete(tags):
            break
        try:
            found = reader(data)
        except Exception as exc:
            logging.debug("%s could not decode upload: %s", reader.__name__, exc)
            continue
        decoded = True
        for key, value in found.items():
            tags.setdefault(key, value)

    if not decoded:
        raise MetadataDecodeError("no decoder recognised the image data")
    return tags


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, bytearray)):
        return _BLANK_DATE.match(_clean_text(value)) is not None
    return False


def format_date_key(value) -> str:
    """Turn an epoch-seconds number or an EXIF ``YYYY:MM:DD ...`` string into ``YYYY-MM``."""
    if isinstance(value, bool):
        return UNKNOWN_DATE
    if isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return UNKNOWN_DATE
        return f"{dt.year:04d}-{dt.month:02d}"
    if isinstance(value, (str, bytes, bytearray)):
        match = _EXIF_DATE.match(_clean_text(value))
        if match:
            return f"{match.group(1)}-{match.group(2)}"
    return UNKNOWN_DATE


def date_key_from_tags(tags: Mapping[str, Any]) -> str:
    # the first tag present decides, even when it doesn't parse
    for name in DATE_TAGS:
        value = tags.get(name)
        if _is_blank(value):
            continue
        return format_date_key(value)
    return UNKNOWN_DATE


def round_coordinate(value) -> float:
    """Round half away from zero to two decimals, on the value's decimal form.

    Ties are symmetric on purpose: -74.005 buckets to -74.01 just as 74.005
    buckets to 74.01, so mirrored coordinates land in mirrored buckets.
    """
    bucket = Decimal(repr(float(value))).quantize(_GPS_STEP, rounding=ROUND_HALF_UP)
    # + 0.0 folds -0.0 into 0.0 so both print the same
    return float(bucket) + 0.0


def _is_coordinate(value) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(float(value))
    )


def gps_bucket_from_tags(tags: Mapping[str, Any]) -> Optional[GpsBucket]:
    lat = tags.get("GPSLatitude")
    lon = tags.get("GPSLongitude")
    if not (_is_coordinate(lat) and _is_coordinate(lon)):
        return None
    return GpsBucket(lat=round_coordinate(lat), lon=round_coordinate(lon))


def metadata_from_tags(tags: Mapping[str, Any]) -> ExtractedMetadata:
    return ExtractedMetadata(date_key=date_key_from_tags(tags), gps=gps_bucket_from_tags(tags))


def extract_metadata(data: bytes) -> ExtractedMetadata:
    """Return the grouping metadata for one upload.

    Never raises: missing or malformed EXIF gives ``unknown-date`` and no GPS.
    """
    try:
        return metadata_from_tags(read_tags(data))
    except MetadataDecodeError as exc:
        logging.debug("No usable EXIF, using sentinel metadata: %s", exc)
    except Exception:
        logging.debug("Metadata extraction failed, using sentinel metadata", exc_info=True)
    return ExtractedMetadata.unknown()

