import base64
import json

import pytest

from onchain_upload.content.decoder import MIME_PNG, MIME_SVG, ContentDescriptor, decode, decode_data_uri
from onchain_upload.errors import DecodeError

PNG_HEAD = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + bytes(range(256))
SVG = b'<?xml version="1.0"?>\n<svg xmlns="http://www.w3.org/2000/svg" width="4" height="4"></svg>\n'


def _b64(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")


def test_raw_png_is_passed_through(tmp_path):
    p = tmp_path / "logo.png"
    p.write_bytes(PNG_HEAD)
    desc = decode(p)
    assert desc.mime_type == MIME_PNG
    assert desc.data == PNG_HEAD
    assert len(desc) == len(PNG_HEAD)


def test_raw_svg_is_sniffed(tmp_path):
    p = tmp_path / "logo.svg"
    p.write_bytes(SVG)
    desc = decode(p)
    assert desc.mime_type == MIME_SVG
    # bytes are untouched, including surrounding whitespace
    assert desc.data == SVG


def test_svg_marker_past_sniff_window_is_png(tmp_path):
    p = tmp_path / "late.svg"
    p.write_bytes(b" " * 300 + b"<svg></svg>")
    assert decode(p).mime_type == MIME_PNG


def test_data_uri_text(tmp_path):
    p = tmp_path / "logo.txt"
    p.write_text("  data:image/png;base64," + _b64(PNG_HEAD) + "\n")
    desc = decode(p)
    assert desc == ContentDescriptor(mime_type="image/png", data=PNG_HEAD)


def test_string_marker_is_stripped(tmp_path):
    p = tmp_path / "explorer.txt"
    p.write_text("string: data:image/svg+xml;base64," + _b64(SVG))
    desc = decode(p)
    assert desc.mime_type == "image/svg+xml"
    assert desc.data == SVG


def test_charset_parameter_is_accepted(tmp_path):
    p = tmp_path / "svg.txt"
    p.write_text("data:image/svg+xml;charset=utf-8;base64," + _b64(SVG))
    assert decode(p).data == SVG


def test_token_uri_json_unwraps_nested_image(tmp_path):
    meta = {"name": "Token", "image": "data:image/png;base64," + _b64(PNG_HEAD)}
    uri = "data:application/json;base64," + _b64(json.dumps(meta).encode())
    p = tmp_path / "token_uri.txt"
    p.write_text("string:" + uri)
    desc = decode(p)
    assert desc.mime_type == "image/png"
    assert desc.data == PNG_HEAD


def test_mime_override_keeps_bytes(tmp_path):
    p = tmp_path / "logo.png"
    p.write_bytes(PNG_HEAD)
    desc = decode(p, mime_override="image/webp")
    assert desc.mime_type == "image/webp"
    assert desc.data == PNG_HEAD


def test_view_is_read_only():
    view = ContentDescriptor("image/png", b"abc").view()
    assert view.readonly
    assert bytes(view[1:]) == b"bc"


@pytest.mark.parametrize(
    "content, needle",
    [
        ("data:image/png,notbase64", "unrecognized data URI"),
        ("data:image/png;base64,@@@@", "invalid base64"),
        ("data:application/json;base64," + _b64(b"{not json"), "not valid JSON"),
        ("data:application/json;base64," + _b64(b"[1, 2]"), "not an object"),
        ("data:application/json;base64," + _b64(b'{"name": "x"}'), "no 'image'"),
        ("data:application/json;base64," + _b64(b'{"image": 7}'), "not a string"),
        ("data:application/json;base64," + _b64(b'{"image": "ipfs://Qm"}'), "not a data URI"),
    ],
)
def test_malformed_inputs_raise_decode_error(tmp_path, content, needle):
    p = tmp_path / "bad.txt"
    p.write_text(content)
    with pytest.raises(DecodeError) as ei:
        decode(p)
    assert needle in ei.value.message
    assert ei.value.path == str(p)


def test_missing_file_raises_decode_error(tmp_path):
    with pytest.raises(DecodeError):
        decode(tmp_path / "nope.png")


def test_decode_data_uri_rejects_plain_text():
    assert decode_data_uri("hello") is None
