"""Small self-contained reader and writer for HDF5 files holding plain arrays.

The writer produces classic HDF5 files (version 0 superblock, symbol-table
root group, contiguous datasets) that any HDF5 library can open.  The reader
understands those files as well as the common layouts written by other
tools: version 0-3 superblocks, version 1 and 2 object headers, symbol-table
and compact link groups, contiguous and compact datasets of integer or
floating-point numbers.
"""

from __future__ import annotations

import os
import struct
from collections.abc import Iterator, Mapping

import numpy as np

SIGNATURE = b"\x89HDF\r\n\x1a\n"

_UNDEF = 0xFFFFFFFFFFFFFFFF
_OFFSET_SIZE = 8
_LENGTH_SIZE = 8
_GROUP_INTERNAL_K = 16
_MIN_GROUP_LEAF_K = 4
_ENTRY_SIZE = 40
_SUPERBLOCK_SIZE = 96
_HEAP_HEADER_SIZE = 32

_MSG_DATASPACE = 0x0001
_MSG_DATATYPE = 0x0003
_MSG_FILL_VALUE = 0x0005
_MSG_LINK = 0x0006
_MSG_LAYOUT = 0x0008
_MSG_CONTINUATION = 0x0010
_MSG_SYMBOL_TABLE = 0x0011


def _pad8(size: int) -> int:
    return (size + 7) & ~7


# --------------------------------------------------------------------------
# Writing
# --------------------------------------------------------------------------


def _storage_dtype(dtype: np.dtype) -> np.dtype:
    if dtype.kind == "f" and dtype.itemsize in (4, 8):
        return dtype.newbyteorder("<")
    if dtype.kind in "iu" and dtype.itemsize in (1, 2, 4, 8):
        return dtype.newbyteorder("<")
    raise TypeError(f"unsupported data type for HDF5 storage: {dtype}")


def _check_name(name: str) -> str:
    if not isinstance(name, str) or not name or "/" in name or "\0" in name:
        raise ValueError(f"invalid dataset name: {name!r}")
    return name


def _message(msg_type: int, body: bytes) -> bytes:
    padded = body.ljust(_pad8(len(body)), b"\0")
    return struct.pack("<HHB3x", msg_type, len(padded), 0) + padded


def _object_header(messages: list[bytes]) -> bytes:
    body = b"".join(messages)
    return struct.pack("<BBHII4x", 1, 0, len(messages), 1, len(body)) + body


def _dataspace_body(shape: tuple[int, ...]) -> bytes:
    return struct.pack("<BBBB4x", 1, len(shape), 0, 0) + struct.pack(f"<{len(shape)}Q", *shape)


def _datatype_body(dtype: np.dtype) -> bytes:
    bits = dtype.itemsize * 8
    if dtype.kind == "f":
        if dtype.itemsize == 8:
            sign, exp_loc, exp_size, mant_size, bias = 63, 52, 11, 52, 1023
        else:
            sign, exp_loc, exp_size, mant_size, bias = 31, 23, 8, 23, 127
        class_bits = bytes([0x20, sign, 0])
        props = struct.pack("<HHBBBBI", 0, bits, exp_loc, exp_size, 0, mant_size, bias)
        type_class = 1
    else:
        class_bits = bytes([0x08 if dtype.kind == "i" else 0x00, 0, 0])
        props = struct.pack("<HH", 0, bits)
        type_class = 0
    return bytes([0x10 | type_class]) + class_bits + struct.pack("<I", dtype.itemsize) + props


def _dataset_header(array: np.ndarray, data_address: int) -> bytes:
    layout = struct.pack("<BBQQ", 3, 1, data_address, array.nbytes)
    return _object_header(
        [
            _message(_MSG_DATASPACE, _dataspace_body(array.shape)),
            _message(_MSG_DATATYPE, _datatype_body(array.dtype)),
            _message(_MSG_FILL_VALUE, bytes([2, 2, 2, 0])),
            _message(_MSG_LAYOUT, layout),
        ]
    )


def write_datasets(path: str | os.PathLike, datasets: Mapping[str, object]) -> None:
    """Write the given name -> array mapping as datasets of a new HDF5 file."""
    items: list[tuple[str, np.ndarray]] = []
    for name, data in datasets.items():
        _check_name(name)
        array = np.ascontiguousarray(data)
        items.append((name, np.ascontiguousarray(array.astype(_storage_dtype(array.dtype), copy=False))))
    items.sort(key=lambda item: item[0].encode("utf-8"))

    leaf_k = max(_MIN_GROUP_LEAF_K, (len(items) + 1) // 2)

    heap = bytearray(8)  # offset 0 holds the empty name of the root group
    name_offsets: list[int] = []
    for name, _ in items:
        name_offsets.append(len(heap))
        raw = name.encode("utf-8") + b"\0"
        heap += raw.ljust(_pad8(len(raw)), b"\0")

    root_address = _SUPERBLOCK_SIZE
    root_header_size = 16 + 8 + 16
    heap_address = root_address + root_header_size
    heap_data_address = heap_address + _HEAP_HEADER_SIZE
    btree_address = heap_data_address + len(heap)
    btree_size = 24 + 2 * _GROUP_INTERNAL_K * _OFFSET_SIZE + (2 * _GROUP_INTERNAL_K + 1) * _LENGTH_SIZE
    snod_address = btree_address + btree_size
    snod_size = 8 + 2 * leaf_k * _ENTRY_SIZE if items else 0

    cursor = snod_address + snod_size
    parts: list[tuple[int, bytes]] = []
    header_addresses: list[int] = []
    for _, array in items:
        header_size = len(_dataset_header(array, 0))
        data_address = cursor + header_size if array.nbytes else _UNDEF
        parts.append((cursor, _dataset_header(array, data_address)))
        header_addresses.append(cursor)
        cursor += header_size
        if array.nbytes:
            parts.append((cursor, array.tobytes()))
            cursor = _pad8(cursor + array.nbytes)
    eof = cursor

    superblock = (
        SIGNATURE
        + struct.pack("<8BHHI", 0, 0, 0, 0, 0, _OFFSET_SIZE, _LENGTH_SIZE, 0, leaf_k, _GROUP_INTERNAL_K, 0)
        + struct.pack("<QQQQ", 0, _UNDEF, eof, _UNDEF)
        + struct.pack("<QQII", 0, root_address, 1, 0)
        + struct.pack("<QQ", btree_address, heap_address)
    )
    root_header = _object_header([_message(_MSG_SYMBOL_TABLE, struct.pack("<QQ", btree_address, heap_address))])
    heap_header = b"HEAP" + struct.pack("<B3xQQQ", 0, len(heap), _UNDEF, heap_data_address)

    btree = bytearray(b"TREE" + struct.pack("<BBHQQ", 0, 0, 1 if items else 0, _UNDEF, _UNDEF))
    if items:
        btree += struct.pack("<QQQ", 0, snod_address, name_offsets[-1])
    parts.extend(
        [
            (0, superblock),
            (root_address, root_header),
            (heap_address, heap_header),
            (heap_data_address, bytes(heap)),
            (btree_address, bytes(btree.ljust(btree_size, b"\0"))),
        ]
    )

    if items:
        snod = bytearray(b"SNOD" + struct.pack("<BBH", 1, 0, len(items)))
        for offset, header_address in zip(name_offsets, header_addresses):
            snod += struct.pack("<QQII16x", offset, header_address, 0, 0)
        parts.append((snod_address, bytes(snod.ljust(snod_size, b"\0"))))

    buffer = bytearray(eof)
    for address, blob in parts:
        buffer[address : address + len(blob)] = blob
    with open(path, "wb") as handle:
        handle.write(buffer)


# --------------------------------------------------------------------------
# Reading
# --------------------------------------------------------------------------


def _uint(buf: bytes, pos: int, size: int) -> int:
    if pos < 0 or pos + size > len(buf):
        raise ValueError("truncated HDF5 structure")
    return int.from_bytes(buf[pos : pos + size], "little")


class _File:
    def __init__(self, data: bytes) -> None:
        self.data = data
        start = self._find_superblock()
        pos = start + len(SIGNATURE)
        version = _uint(data, pos, 1)
        if version in (0, 1):
            self.osize = _uint(data, pos + 5, 1)
            self.lsize = _uint(data, pos + 6, 1)
            pos += 16 + (4 if version == 1 else 0)
            self.base = _uint(data, pos, self.osize)
            pos += 4 * self.osize
            self.root = _uint(data, pos + self.osize, self.osize)
        elif version in (2, 3):
            self.osize = _uint(data, pos + 1, 1)
            self.lsize = _uint(data, pos + 2, 1)
            pos += 4
            self.base = _uint(data, pos, self.osize)
            self.root = _uint(data, pos + 3 * self.osize, self.osize)
        else:
            raise ValueError(f"unsupported HDF5 superblock version {version}")
        self.undef = (1 << (8 * self.osize)) - 1

    def _find_superblock(self) -> int:
        pos = 0
        while pos + len(SIGNATURE) <= len(self.data):
            if self.data[pos : pos + len(SIGNATURE)] == SIGNATURE:
                return pos
            pos = 512 if pos == 0 else pos * 2
        raise ValueError("not an HDF5 file")

    def absolute(self, address: int) -> int:
        return self.base + address

    # -- object headers ---------------------------------------------------

    def messages(self, address: int) -> list[tuple[int, bytes]]:
        pos = self.absolute(address)
        if self.data[pos : pos + 4] == b"OHDR":
            return self._messages_v2(pos)
        if _uint(self.data, pos, 1) != 1:
            raise ValueError("unknown object header format")
        size = _uint(self.data, pos + 8, 4)
        return self._collect([(pos + 16, pos + 16 + size)], version=1, creation_order=False)

    def _messages_v2(self, pos: int) -> list[tuple[int, bytes]]:
        flags = _uint(self.data, pos + 5, 1)
        p = pos + 6
        if flags & 0x20:
            p += 16
        if flags & 0x10:
            p += 4
        size_len = 1 << (flags & 0x03)
        chunk = _uint(self.data, p, size_len)
        p += size_len
        return self._collect([(p, p + chunk)], version=2, creation_order=bool(flags & 0x04))

    def _collect(self, blocks: list[tuple[int, int]], version: int, creation_order: bool) -> list[tuple[int, bytes]]:
        found: list[tuple[int, bytes]] = []
        head = 8 if version == 1 else 4 + (2 if creation_order else 0)
        while blocks:
            p, end = blocks.pop(0)
            while p + head <= end:
                if version == 1:
                    msg_type = _uint(self.data, p, 2)
                    msg_size = _uint(self.data, p + 2, 2)
                else:
                    msg_type = _uint(self.data, p, 1)
                    msg_size = _uint(self.data, p + 1, 2)
                body = self.data[p + head : p + head + msg_size]
                p += head + msg_size
                if msg_type == _MSG_CONTINUATION:
                    where = self.absolute(_uint(body, 0, self.osize))
                    length = _uint(body, self.osize, self.lsize)
                    if version == 1:
                        blocks.append((where, where + length))
                    else:
                        blocks.append((where + 4, where + length - 4))
                else:
                    found.append((msg_type, body))
        return found

    # -- groups -----------------------------------------------------------

    def links(self, address: int) -> dict[str, int]:
        children: dict[str, int] = {}
        for msg_type, body in self.messages(address):
            if msg_type == _MSG_SYMBOL_TABLE:
                btree = _uint(body, 0, self.osize)
                heap = _uint(body, self.osize, self.osize)
                children.update(self._symbol_table(btree, heap))
            elif msg_type == _MSG_LINK:
                link = self._hard_link(body)
                if link is not None:
                    children[link[0]] = link[1]
        return children

    def _hard_link(self, body: bytes) -> tuple[str, int] | None:
        flags = _uint(body, 1, 1)
        p = 2
        link_type = 0
        if flags & 0x08:
            link_type = _uint(body, p, 1)
            p += 1
        if flags & 0x04:
            p += 8
        if flags & 0x10:
            p += 1
        length_size = 1 << (flags & 0x03)
        name_length = _uint(body, p, length_size)
        p += length_size
        name = body[p : p + name_length].decode("utf-8")
        p += name_length
        if link_type != 0:
            return None
        return name, _uint(body, p, self.osize)

    def _symbol_table(self, btree: int, heap: int) -> dict[str, int]:
        heap_pos = self.absolute(heap)
        if self.data[heap_pos : heap_pos + 4] != b"HEAP":
            raise ValueError("corrupt local heap")
        segment = self.absolute(_uint(self.data, heap_pos + 8 + 2 * self.lsize, self.osize))
        result: dict[str, int] = {}
        for name_offset, header in self._walk_btree(btree):
            start = segment + name_offset
            end = self.data.find(b"\0", start)
            if end < 0:
                raise ValueError("corrupt local heap name")
            name = self.data[start:end].decode("utf-8")
            if name:
                result[name] = header
        return result

    def _walk_btree(self, address: int) -> Iterator[tuple[int, int]]:
        pos = self.absolute(address)
        if self.data[pos : pos + 4] != b"TREE":
            raise ValueError("corrupt group B-tree")
        level = _uint(self.data, pos + 5, 1)
        entries = _uint(self.data, pos + 6, 2)
        p = pos + 8 + 2 * self.osize
        for _ in range(entries):
            p += self.lsize
            child = _uint(self.data, p, self.osize)
            p += self.osize
            if level:
                yield from self._walk_btree(child)
            else:
                yield from self._symbol_node(child)

    def _symbol_node(self, address: int) -> Iterator[tuple[int, int]]:
        pos = self.absolute(address)
        if self.data[pos : pos + 4] != b"SNOD":
            raise ValueError("corrupt symbol table node")
        count = _uint(self.data, pos + 6, 2)
        entry_size = 2 * self.osize + 24
        for k in range(count):
            p = pos + 8 + k * entry_size
            yield _uint(self.data, p, self.osize), _uint(self.data, p + self.osize, self.osize)

    # -- datasets ---------------------------------------------------------

    def dataset(self, address: int) -> np.ndarray:
        shape = dtype = layout = None
        for msg_type, body in self.messages(address):
            if msg_type == _MSG_DATASPACE:
                shape = self._dataspace(body)
            elif msg_type == _MSG_DATATYPE:
                dtype = self._datatype(body)
            elif msg_type == _MSG_LAYOUT:
                layout = self._layout(body)
        if shape is None or dtype is None or layout is None:
            raise ValueError("object is not a dataset")
        count = int(np.prod(shape, dtype=np.int64))
        nbytes = count * dtype.itemsize
        native = dtype.newbyteorder("=")
        kind, where = layout
        if kind == "compact":
            raw = where
        elif where == self.undef:
            return np.zeros(shape, dtype=native)
        else:
            start = self.absolute(where)
            raw = self.data[start : start + nbytes]
        if len(raw) < nbytes:
            raise ValueError("truncated dataset")
        array = np.frombuffer(raw, dtype=dtype, count=count).reshape(shape)
        return array.astype(native)

    def _dataspace(self, body: bytes) -> tuple[int, ...]:
        version = _uint(body, 0, 1)
        rank = _uint(body, 1, 1)
        if version == 1:
            start = 8
        elif version == 2:
            if _uint(body, 3, 1) == 2:
                return (0,)
            start = 4
        else:
            raise ValueError(f"unsupported dataspace version {version}")
        return tuple(_uint(body, start + k * self.lsize, self.lsize) for k in range(rank))

    @staticmethod
    def _datatype(body: bytes) -> np.dtype:
        type_class = _uint(body, 0, 1) & 0x0F
        bits = _uint(body, 1, 1)
        size = _uint(body, 4, 4)
        order = ">" if bits & 0x01 else "<"
        if type_class == 0:
            kind = "i" if bits & 0x08 else "u"
        elif type_class == 1:
            kind = "f"
        else:
            raise ValueError(f"unsupported datatype class {type_class}")
        return np.dtype(f"{order}{kind}{size}")

    def _layout(self, body: bytes) -> tuple[str, object]:
        version = _uint(body, 0, 1)
        if version not in (3, 4):
            raise ValueError(f"unsupported layout version {version}")
        layout_class = _uint(body, 1, 1)
        if layout_class == 0:
            size = _uint(body, 2, 2)
            return "compact", bytes(body[4 : 4 + size])
        if layout_class == 1:
            return "contiguous", _uint(body, 2, self.osize)
        raise ValueError("only contiguous and compact datasets are supported")


def read_dataset(path: str | os.PathLike, name: str) -> np.ndarray:
    """Read the named dataset from an HDF5 file as a numpy array."""
    with open(path, "rb") as handle:
        data = handle.read()
    parts = [part for part in name.split("/") if part]
    if not parts:
        raise ValueError(f"invalid dataset name: {name!r}")
    hdf = _File(data)
    address = hdf.root
    for part in parts:
        children = hdf.links(address)
        if part not in children:
            raise KeyError(name)
        address = children[part]
    return hdf.dataset(address)