import json
import struct

import pytest

from squisher.errors import MalformedInputError
from squisher.glb import align_to_4, load_glb, pad_to_4, read_glb, write_glb

GLTF = {"asset": {"version": "2.0"}, "buffers": [{"byteLength": 5}]}


def test_read_glb_returns_json_and_blob(make_glb):
    gltf, blob = read_glb(make_glb(GLTF, b"\x01\x02\x03\x04\x05"))
    assert gltf == GLTF
    # BIN chunk keeps its zero padding
    assert blob == b"\x01\x02\x03\x04\x05\x00\x00\x00"


def test_read_glb_skips_unknown_chunks(make_glb):
    data = make_glb(GLTF, b"abcd", extra_chunks=[(0x12345678, b"xxxx")])
    gltf, blob = read_glb(data)
    assert blob == b"abcd"


@pytest.mark.parametrize("data, message", [
    (b"glTF", "too short"),
    (b"abcd" + struct.pack("<II", 2, 12), "magic"),
    (b'{"asset": {"version": "2.0"}}', "textual"),
])
def test_read_glb_rejects_non_glb(data, message):
    with pytest.raises(MalformedInputError, match=message):
        read_glb(data)


def test_read_glb_rejects_wrong_version(make_glb):
    with pytest.raises(MalformedInputError, match="version 1"):
        read_glb(make_glb(GLTF, b"abcd", version=1))


def test_read_glb_rejects_truncated_file(make_glb):
    data = make_glb(GLTF, b"abcd")
    with pytest.raises(MalformedInputError, match="declares"):
        read_glb(data[:-4])


def test_read_glb_requires_binary_chunk(make_glb):
    with pytest.raises(MalformedInputError, match="No binary chunk"):
        read_glb(make_glb(GLTF, None))


def test_read_glb_rejects_bad_json():
    body = b"{not json}  "
    data = struct.pack("<4sII", b"glTF", 2, 12 + 8 + len(body))
    data += struct.pack("<II", len(body), 0x4E4F534A) + body
    with pytest.raises(MalformedInputError, match="Invalid JSON"):
        read_glb(data)


def test_read_glb_requires_json_first():
    body = b"abcd"
    data = struct.pack("<4sII", b"glTF", 2, 12 + 8 + len(body))
    data += struct.pack("<II", len(body), 0x004E4942) + body
    with pytest.raises(MalformedInputError, match="not a JSON chunk"):
        read_glb(data)


def test_write_glb_pads_and_sets_lengths():
    gltf = {"asset": {"version": "2.0"}, "x": "abc"}
    data = write_glb(gltf, b"\x01\x02\x03")

    magic, version, length = struct.unpack_from("<4sII", data, 0)
    assert (magic, version, length) == (b"glTF", 2, len(data))

    json_len, json_type = struct.unpack_from("<II", data, 12)
    assert json_len % 4 == 0
    assert json.loads(data[20:20 + json_len]) == gltf

    bin_len, bin_type = struct.unpack_from("<II", data, 20 + json_len)
    assert bin_type == 0x004E4942
    assert bin_len == 4
    assert data[-4:] == b"\x01\x02\x03\x00"
    assert length == 12 + 8 + json_len + 8 + bin_len


def test_write_then_read():
    gltf = {"asset": {"version": "2.0"}, "name": "café"}
    assert read_glb(write_glb(gltf, b"12345678")) == (gltf, b"12345678")


def test_padding_helpers():
    assert [align_to_4(n) for n in range(6)] == [0, 4, 4, 4, 4, 8]
    assert pad_to_4(b"abcde", b" ") == b"abcde   "
    assert pad_to_4(b"abcd") == b"abcd"


def test_load_glb_rejects_textual_and_unknown_extensions(tmp_path):
    gltf_file = tmp_path / "scene.gltf"
    gltf_file.write_text("{}")
    with pytest.raises(MalformedInputError, match="gltf files are not currently supported"):
        load_glb(gltf_file)

    other = tmp_path / "scene.obj"
    other.write_bytes(b"")
    with pytest.raises(MalformedInputError, match="extension"):
        load_glb(other)


def test_load_glb_reads_file(tmp_path, make_glb):
    path = tmp_path / "Box.GLB"
    path.write_bytes(make_glb(GLTF, b"abcd"))
    gltf, blob = load_glb(path)
    assert gltf == GLTF
    assert blob == b"abcd"
