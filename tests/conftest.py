import os
from hashlib import sha1
from struct import pack as pk

import pytest
from Crypto.Cipher import AES

from cdndat.binary import TITLE_SLOTS, crc16_modbus
from cdndat.tickets import content_iv

BANNER_ADDR = 0x1000
COMMON_KEY = bytes(range(16))


def make_rom(titles=None, gameCode='KTRE', gameTitle='TETRISPARTY', bannerVersion=3, valid=True):
    data = bytearray(BANNER_ADDR + 0x240 + 0x100*len(TITLE_SLOTS))
    data[0:len(gameTitle)] = gameTitle.encode('ascii')
    data[0x0C:0x10] = gameCode.encode('ascii')
    data[0x68:0x6C] = pk('<I', BANNER_ADDR)
    crc = crc16_modbus(bytes(data[0:0x15E]))
    if not valid:
        crc ^= 0xFFFF
    data[0x15E:0x160] = pk('<H', crc)

    data[BANNER_ADDR:BANNER_ADDR + 2] = pk('<H', bannerVersion)
    for slot, text in (titles or {}).items():
        off = BANNER_ADDR + 0x240 + 0x100*TITLE_SLOTS.index(slot)
        raw = text.encode('utf-16-le')
        data[off:off + len(raw)] = raw
    return bytes(data)

def make_tmd(version, contents):
    # contents: [(id, index, data)]
    data = bytearray(0x1E4 + 36*len(contents))
    data[0x1DC:0x1DE] = pk('>h', version)
    data[0x1DE:0x1E0] = pk('>h', len(contents))
    for n, (cid, index, blob) in enumerate(contents):
        off = 0x1E4 + 36*n
        data[off:off + 4] = pk('>I', cid)
        data[off + 4:off + 6] = pk('>H', index)
        data[off + 8:off + 16] = pk('>Q', len(blob))
        data[off + 16:off + 36] = sha1(blob).digest()
    return bytes(data)

def make_ticket(titleKey, tid, version=0, commonKey=COMMON_KEY):
    data = bytearray(0x2A4)
    iv = bytes.fromhex(tid).ljust(16, b'\x00')
    data[0x1BF:0x1CF] = AES.new(commonKey, AES.MODE_CBC, iv).encrypt(titleKey)
    data[0x1DC:0x1E4] = bytes.fromhex(tid)
    data[0x1E6:0x1E8] = pk('>H', version)
    return bytes(data)

def encrypt_content(titleKey, index, data):
    return AES.new(titleKey, AES.MODE_CBC, content_iv(index)).encrypt(data)

def write(path, data):
    with open(path, 'wb') as f:
        f.write(data)
    return path


@pytest.fixture
def title_dir(tmp_path):
    # A title directory as left behind by a download followed by decryption
    def build(tid='000300044B545245', titles=None, gameCode=None, version=1056, decrypted=True,
              titleKey=b'\x11'*16, ticket=False, extra=None):
        tdir = tmp_path / tid
        tdir.mkdir()
        gameCode = gameCode or bytes.fromhex(tid[8:]).decode('ascii')
        rom = make_rom(titles if titles is not None else {'En': 'Tetris Party Live\nHudson Soft'},
                       gameCode=gameCode)
        write(str(tdir / ('tmd.%d' % version)), make_tmd(version, [(0, 0, rom)]))
        write(str(tdir / '00000000'), encrypt_content(titleKey, 0, rom))
        if decrypted:
            write(str(tdir / '00000000.app'), rom)
        if ticket:
            write(str(tdir / 'cetk'), make_ticket(titleKey, tid, version))
        for name, data in (extra or {}).items():
            write(str(tdir / name), data)
        return str(tdir)
    return build
