import os
import logging

import pytest

from cdndat.binary import DEFAULT_TITLE
from cdndat.collect import classify_files, collect_title, collect_all, load_or_collect, TitleRecord
from cdndat.errors import TitleError, CheckpointError
from cdndat.languages import Language
from cdndat.regions import Region

from conftest import make_rom, write


def never(text):
    return []


def test_classify_files():
    files = classify_files(['cetk', 'tmd', 'tmd.256', 'tmd.256.headers.txt', '00000000', '00000000.app',
                            '00000000.checks.txt', 'fffeffff', 'fffffffd', 'fffd0001', 'fffffffe',
                            'DeletedTitle.txt', 'notes.md'])
    assert files['deleted']
    assert files['tickets'] == ['cetk']
    assert files['metadata'] == ['tmd', 'tmd.256']
    assert files['encrypted'] == ['00000000']
    assert files['decrypted'] == ['00000000.app']
    assert files['meta'] == ['fffeffff', 'fffffffd']
    assert files['misc'] == ['fffd0001', 'fffffffe']

def test_collect_title(title_dir):
    tdir = title_dir(titles={'En': 'The Tetris Party\nHudson', 'Ja': 'テトリスパーティー\nハドソン'})
    record = collect_title(tdir, classify=never)
    assert record.titleId == '000300044B545245'
    assert record.gameCode == 'KTRE'
    assert record.regionCode == 'E'
    assert Region(record.region) == Region.USA
    assert set(record.languages) == {Language.En, Language.Ja}
    assert record.nebulousLanguages == ()
    assert record.primaryLanguage == Language.En
    assert record.displayName == 'Tetris Party, The'
    assert not record.system
    assert not record.deleted
    assert record.metadata[0].titleVersion == 1056
    assert record.decrypted[0].contentId == '00000000'
    assert record.decrypted[0].metadataIndex == 0
    assert record.decrypted[0].serial == 'KTRE,TETRISPARTY'
    assert record.title_only(Language.En) == 'The Tetris Party'

def test_record_is_immutable(title_dir):
    record = collect_title(title_dir(), classify=never)
    with pytest.raises(AttributeError):
        record.displayName = 'Something else'

def test_name_override(title_dir):
    tdir = title_dir()
    record = collect_title(tdir, nameOverrides={'000300044B545245': 'Tetris Party Live'}, classify=never)
    assert record.displayName == 'Tetris Party Live'

def test_deleted_and_system_titles(title_dir):
    tdir = title_dir(tid='0003000448414145', titles={'En': DEFAULT_TITLE},
                     extra={'DeletedTitle.txt': b''})
    record = collect_title(tdir, classify=never)
    assert record.deleted
    assert record.system
    assert record.displayName == ''

def test_invalid_rom_region_from_title_id(title_dir, caplog):
    tdir = title_dir(tid='000300044B54524A')
    write(os.path.join(tdir, '00000000.app'), make_rom({'En': 'Broken'}, valid=False))
    with caplog.at_level(logging.WARNING):
        record = collect_title(tdir, classify=never)
    assert record.regionCode == 'J'
    assert 'not valid' in caplog.text

def test_too_few_files(title_dir):
    tdir = title_dir(decrypted=False)
    with pytest.raises(TitleError):
        collect_title(tdir, classify=never)

def test_count_mismatch_logged(title_dir, caplog):
    tdir = title_dir(extra={'00000001': b'\x00'*16})
    with caplog.at_level(logging.ERROR):
        collect_title(tdir, classify=never)
    assert 'mismatched' in caplog.text

def test_uses_authoritative_languages(title_dir):
    class Shop:
        def port_languages(self, tid, region):
            return [Language.En, Language.Fr, Language.De]
        def has_port(self, tid):
            return True

    record = collect_title(title_dir(), shop=Shop(), classify=never)
    assert record.usedEshop
    assert record.languages == (Language.En, Language.Fr, Language.De)

def test_collect_all_sorted_and_skipping(title_dir, tmp_path, caplog):
    title_dir(tid='000300044B54524A')
    title_dir(tid='000300044B545245')
    title_dir(tid='000300044B545250', decrypted=False)
    with caplog.at_level(logging.ERROR):
        records = collect_all(str(tmp_path), threads=2, classify=never)
    assert [r.titleId for r in records] == ['000300044B545245', '000300044B54524A']
    assert 'Skipping' in caplog.text

def test_load_or_collect_caches(tmp_path, title_dir):
    cachePath = str(tmp_path / 'cache.pickle')
    tdir = title_dir()
    calls = []
    def compute():
        calls.append(1)
        return [collect_title(tdir, classify=never)]

    first = load_or_collect(cachePath, compute)
    second = load_or_collect(cachePath, compute)
    assert len(calls) == 1
    assert isinstance(second[0], TitleRecord)
    assert second[0].titleId == first[0].titleId
    assert second[0].languages == first[0].languages

def test_unreadable_cache_is_fatal(tmp_path):
    cachePath = write(str(tmp_path / 'cache.pickle'), b'not a pickle')
    with pytest.raises(CheckpointError):
        load_or_collect(cachePath, lambda: [])

def test_truncated_metadata_skips_only_that_title(title_dir, tmp_path, caplog):
    title_dir(tid='000300044B545245')
    title_dir(tid='000300044B54524A', extra={'tmd.1': b'\x00'*0x40})
    with caplog.at_level(logging.ERROR):
        records = collect_all(str(tmp_path), threads=2, classify=never)
    assert [r.titleId for r in records] == ['000300044B545245']
    assert 'tmd.1' in caplog.text
