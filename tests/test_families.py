from collections import namedtuple

from cdndat.families import group_families, resolve_family, assign_archive_ids, build_members, family_key
from cdndat.languages import Language as L

Record = namedtuple('Record', ['titleId', 'languages', 'regionCode'])


def test_family_key():
    assert family_key('000300044b545245') == '000300044B5452'

def test_english_release_with_most_languages_is_parent():
    records = [Record('0003000448414145', (L.En,), 'E'),
               Record('000300044841414A', (L.Ja, L.En), 'J')]
    members = build_members(records)
    assert [(records[m.index].regionCode, m.archiveId, m.cloneOf) for m in members] == [
        ('J', '0001', 'P'),
        ('E', '0002', '0001'),
    ]

def test_english_beats_language_count():
    records = [Record('000300044841414A', (L.Ja, L.Fr, L.De), 'J'),
               Record('0003000448414150', (L.En,), 'P')]
    assert resolve_family(records, [0, 1]) == [1, 0]

def test_region_code_breaks_ties():
    records = [Record('0003000448414145', (L.En,), 'E'),
               Record('0003000448414156', (L.En,), 'V'),
               Record('0003000448414150', (L.En,), 'P')]
    assert resolve_family(records, [0, 1, 2]) == [1, 2, 0]

def test_singleton_has_no_clone_marker():
    members = build_members([Record('0003000448414145', (L.En,), 'E')])
    assert members[0].cloneOf == ''
    assert members[0].archiveId == '0001'

def test_one_parent_per_family():
    records = [Record('00030004484141%02X' % c, (L.En,), chr(c)) for c in b'EJPK']
    members = build_members(records)
    assert [m.cloneOf for m in members].count('P') == 1
    parent = [m for m in members if m.cloneOf == 'P'][0]
    assert all(m.cloneOf == parent.archiveId for m in members if m is not parent)

def test_families_in_order_of_first_appearance():
    records = [Record('0003000448414145', (L.En,), 'E'),
               Record('0003000448424145', (L.En,), 'E'),
               Record('000300044841414A', (L.Ja,), 'J')]
    assert group_families(records) == [[0, 2], [1]]

def test_archive_ids_are_distinct_and_increasing():
    families = [[0, 1], [2], [3, 4, 5]]
    members = assign_archive_ids(families)
    ids = [m.archiveId for m in members]
    assert ids == ['0001', '0002', '0003', '0004', '0005', '0006']
    assert [m.index for m in members] == [0, 1, 2, 3, 4, 5]
    assert [m.cloneOf for m in members] == ['P', '0001', '', 'P', '0004', '0004']
