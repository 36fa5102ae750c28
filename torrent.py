from dataclasses import dataclass, field

from bencoding import decode, decode_into, encode
from records import bfield
from utils import format_size, logger, sha1_hash

PIECE_HASH_SIZE = 20


@dataclass
class FileEntry:
    length: int = 0
    path: list[str] = field(default_factory=list)
    md5sum: str = bfield(omitempty=True, default="")


@dataclass
class Info:
    name: str = ""
    piece_length: int = bfield("piece length", default=0)
    pieces: bytes = b""
    length: int = bfield(omitempty=True, default=0)
    files: list[FileEntry] = bfield(omitempty=True, default_factory=list)
    private: int = bfield(omitempty=True, default=0)


@dataclass
class Metainfo:
    announce: str = ""
    announce_list: list[list[str]] = bfield("announce-list", omitempty=True, default_factory=list)
    comment: str = bfield(omitempty=True, default="")
    created_by: str = bfield("created by", omitempty=True, default="")
    creation_date: int = bfield("creation date", omitempty=True, default=0)
    info: Info = field(default_factory=Info)


class Torrent:
    def __init__(self, data: bytes):
        # 1. Typed view of the metainfo
        self.meta_info = Metainfo()
        decode_into(data, self.meta_info)
        self.info = self.meta_info.info
        self.name = self.info.name
        self.piece_length = self.info.piece_length
        self.announce = self.meta_info.announce
        self.announce_list = self._get_announce_list()

        # 2. Info Hash, taken over the whole info dictionary, unknown keys included
        self.info_hash = sha1_hash(encode(self._raw_info(data)))

        # 3. Files (Single vs Multi-file)
        self.files = self._parse_files()
        self.total_length = sum(f['length'] for f in self.files)

        # 4. Piece Hashes
        self.pieces_hashes = self._parse_pieces_hashes()
        self.number_of_pieces = len(self.pieces_hashes)

        logger.info(f"Loaded Torrent: {self.name}")
        logger.info(f"Size: {format_size(self.total_length)}")
        logger.info(f"Pieces: {self.number_of_pieces} (Length: {self.piece_length})")
        logger.info(f"Info Hash: {self.info_hash.hex()}")

    @classmethod
    def from_file(cls, file_path):
        with open(file_path, 'rb') as f:
            return cls(f.read())

    @staticmethod
    def _raw_info(data):
        meta_info = decode(data)
        if not isinstance(meta_info, dict) or not isinstance(meta_info.get(b'info'), dict):
            raise ValueError("Torrent has no 'info' dictionary")
        return meta_info[b'info']

    def _get_announce_list(self):
        """Returns a list of all tracker URLs."""
        trackers = []
        if self.meta_info.announce_list:
            for tier in self.meta_info.announce_list:
                trackers.extend(tier)
        elif self.announce:
            trackers.append(self.announce)
        return trackers

    def _parse_files(self):
        if self.info.files:
            # Multi-file mode
            return [
                {'length': f.length, 'path': '/'.join(f.path)}
                for f in self.info.files
            ]
        # Single-file mode
        return [{'length': self.info.length, 'path': self.name}]

    def _parse_pieces_hashes(self):
        """
        The 'pieces' string is a concatenation of 20-byte SHA1 hashes.
        We split it into a list.
        """
        pieces = self.info.pieces
        if len(pieces) % PIECE_HASH_SIZE != 0:
            raise ValueError("Invalid piece hash length")

        return [
            pieces[i:i + PIECE_HASH_SIZE]
            for i in range(0, len(pieces), PIECE_HASH_SIZE)
        ]
