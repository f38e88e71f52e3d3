# -*- coding: utf-8 -*-

# Readers for the fixed-offset records found in a DSiWare CDN title directory:
# the title metadata (tmd) and the header/banner of a decrypted ROM (srl).

import os
import re
import logging
from struct import unpack as upk
from binascii import hexlify as hx, unhexlify as uhx

log = logging.getLogger(__name__)

GAME_CODE_LENGTH = 4
TITLE_ID_LENGTH = 16

DEFAULT_TITLE = 'default title\ndefault subtitle\ndefault publisher'
SYSTEM_GAME_CODE_CHAR = 'H' # First game code character of BIOS/system utilities

# ROM banner title slots, in the order they are stored
TITLE_SLOTS = ('Ja', 'En', 'Fr', 'De', 'It', 'Es', 'Zh', 'Ko')

UNSAFE_FILE_NAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def read_at(data, off, len):
    return bytes(data[off:off + len])

def read_u16(data, off):
    return upk('>H', read_at(data, off, 2))[0]

def read_s16(data, off):
    return upk('>h', read_at(data, off, 2))[0]

def read_u16_le(data, off):
    return upk('<H', read_at(data, off, 2))[0]

def read_u32(data, off):
    return upk('>I', read_at(data, off, 4))[0]

def read_u32_le(data, off):
    return upk('<I', read_at(data, off, 4))[0]

def read_u64(data, off):
    return upk('>Q', read_at(data, off, 8))[0]

def crc16_modbus(data):
    crc = 0xFFFF
    for b in data:
        crc ^= b
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ 0xA001
            else:
                crc >>= 1
    return crc

def version_to_human(ver):
    # 6 bits major, 6 bits minor, 4 bits micro
    ver &= 0xFFFF
    return '%d.%d.%d' % (ver >> 10, (ver >> 4) & 0x3F, ver & 0xF)

def game_code_from_title_id(tid):
    # If the game code can't be read from the ROM, the last 8 hex digits of the title ID spell it out
    return uhx(tid[TITLE_ID_LENGTH - GAME_CODE_LENGTH * 2:]).decode('ascii', 'replace')

def title_id_bytes(tid):
    return uhx(tid)

def safe_file_name(name):
    return UNSAFE_FILE_NAME_RE.sub('', name)


class content_info:
    __slots__ = ('id', 'index', 'size', 'sha1')

    def __init__(self, id, index, size, sha1):
        self.id = id
        self.index = index
        self.size = size
        self.sha1 = sha1

    @property
    def name(self):
        return '%08x' % self.id

    def __repr__(self):
        return 'content_info(%s, index=%d, size=%d)' % (self.name, self.index, self.size)


class tmd:
    TITLE_VERSION_OFFSET = 0x1DC
    NUM_CONTENTS_OFFSET  = 0x1DE
    CONTENTS_OFFSET      = 0x1E4
    CONTENT_CHUNK_SIZE   = 36

    def __init__(self, fileName, titleVersion, contents):
        self.fileName = fileName
        self.titleVersion = titleVersion
        self.contents = contents

    @classmethod
    def from_bytes(cls, data, fileName='tmd'):
        if len(data) < cls.CONTENTS_OFFSET:
            raise ValueError('\'%s\' is truncated (%d bytes).' % (fileName, len(data)))
        titleVersion = read_s16(data, cls.TITLE_VERSION_OFFSET)
        numContents = read_s16(data, cls.NUM_CONTENTS_OFFSET)
        if len(data) < cls.CONTENTS_OFFSET + cls.CONTENT_CHUNK_SIZE*numContents:
            raise ValueError('\'%s\' lists %d contents but is only %d bytes.' % (fileName, numContents, len(data)))

        contents = []
        for n in range(max(numContents, 0)):
            offset = cls.CONTENTS_OFFSET + cls.CONTENT_CHUNK_SIZE*n
            contents.append(content_info(read_u32(data, offset),
                                         read_u16(data, offset+0x4),
                                         read_u64(data, offset+0x8),
                                         hx(read_at(data, offset+0x10, 0x14)).decode()))
        return cls(fileName, titleVersion, contents)

    @classmethod
    def from_file(cls, fPath):
        with open(fPath, 'rb') as f:
            return cls.from_bytes(f.read(), os.path.basename(fPath))

    @property
    def numContents(self):
        return len(self.contents)

    @property
    def suffix(self):
        # tmd.1024 -> 1024, suffixless tmd sorts first
        parts = self.fileName.split('.')
        if len(parts) != 2 or not parts[1].isdigit():
            return -1
        return int(parts[1])


class srl:
    GAME_TITLE_OFFSET    = 0x00
    GAME_TITLE_SIZE      = 12
    GAME_CODE_OFFSET     = 0x0C
    BANNER_ADDR_OFFSET   = 0x68
    HEADER_CRC_OFFSET    = 0x15E
    BANNER_TITLES_OFFSET = 0x240
    BANNER_TITLE_SIZE    = 0x100

    # Banner versions: 1 original (6 titles), 2 adds Chinese, 3 and 0x103 add Korean
    BANNER_TITLE_COUNTS = {0x0001: 6, 0x0002: 7}

    def __init__(self, data, fName=''):
        self.fileName = fName
        self.gameTitle = None
        self.gameCode = None
        self.regionCode = None
        self.bannerVersion = None
        self.titles = [None] * len(TITLE_SLOTS)

        if len(data) < self.HEADER_CRC_OFFSET + 2:
            self.valid = False
            return

        self.valid = crc16_modbus(read_at(data, 0, self.HEADER_CRC_OFFSET)) == read_u16_le(data, self.HEADER_CRC_OFFSET)
        if not self.valid:
            return

        self.gameTitle = read_at(data, self.GAME_TITLE_OFFSET, self.GAME_TITLE_SIZE).decode('latin-1').rstrip('\0')
        self.gameCode = read_at(data, self.GAME_CODE_OFFSET, GAME_CODE_LENGTH).decode('latin-1')
        if len(self.gameCode.rstrip('\0')) >= GAME_CODE_LENGTH:
            self.regionCode = self.gameCode[GAME_CODE_LENGTH - 1]
        else:
            log.warning('The game code for \'%s\' is not valid: \'%s\'', fName, self.gameCode)

        bannerAddr = read_u32_le(data, self.BANNER_ADDR_OFFSET)
        if bannerAddr == 0 or bannerAddr + 2 > len(data):
            return

        self.bannerVersion = read_u16_le(data, bannerAddr)
        titleCount = self.BANNER_TITLE_COUNTS.get(self.bannerVersion, len(TITLE_SLOTS))
        for i in range(titleCount):
            off = bannerAddr + self.BANNER_TITLES_OFFSET + self.BANNER_TITLE_SIZE*i
            raw = read_at(data, off, self.BANNER_TITLE_SIZE)
            title = raw.decode('utf-16-le', 'replace').strip('\0\uffff')
            self.titles[i] = title or None

    @classmethod
    def from_file(cls, fPath):
        with open(fPath, 'rb') as f:
            return cls(f.read(), os.path.basename(fPath))

    def title(self, slot):
        # None when the slot is empty or only holds the default placeholder
        t = self.titles[TITLE_SLOTS.index(slot)]
        if t is None or t.lower() == DEFAULT_TITLE:
            return None
        return t

    def title_only(self, slot):
        t = self.title(slot)
        if t is None:
            return None
        lines = t.split('\n')
        if len(lines) > 1:
            lines = lines[:-1]
        return ' '.join(l.strip(' \0') for l in lines)

    def friendly_title(self, slot='En'):
        t = self.title(slot)
        if t is None:
            return None
        return ' '.join(l.strip(' \0') for l in t.split('\n'))

    def proper_name(self, withGameCode=False, slot='En'):
        parts = [self.gameCode] if withGameCode else []
        if self.gameTitle:
            parts.append(self.gameTitle)
        friendly = self.friendly_title(slot)
        if friendly is not None:
            parts.append(friendly)
        return ' - '.join(parts)

    @property
    def serial(self):
        parts = []
        if self.gameCode:
            parts.append(self.gameCode)
        if self.gameTitle and self.gameTitle.strip():
            parts.append(self.gameTitle.strip())
        return ','.join(parts)
