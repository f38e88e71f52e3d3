# -*- coding: utf-8 -*-

# Grouping regional releases into families, choosing the parent, and numbering the archive.

from collections import namedtuple

from .languages import Language
from .regions import region_code_rank

FAMILY_KEY_LENGTH = 14 # Only the region code (last 2 hex digits) differs between regional releases
STARTING_ARCHIVE_ID = 1

PARENT_MARKER = 'P'

FamilyMember = namedtuple('FamilyMember', ['index', 'archiveId', 'cloneOf'])


def family_key(tid):
    return tid[:FAMILY_KEY_LENGTH].upper()

def parent_rank(record):
    # English releases first, then the most languages, then the widest region
    return (0 if Language.En in record.languages else 1,
            -len(record.languages),
            region_code_rank(record.regionCode))

def group_families(records):
    # Lists of record indices, families in order of first appearance
    families = {}
    for i, r in enumerate(records):
        families.setdefault(family_key(r.titleId), []).append(i)
    return list(families.values())

def resolve_family(records, indices):
    return sorted(indices, key=lambda i: parent_rank(records[i]))

def format_archive_id(n):
    return '%04d' % n

def assign_archive_ids(families, start=STARTING_ARCHIVE_ID):
    members = []
    n = start
    for family in families:
        parentId = format_archive_id(n)
        for rank, index in enumerate(family):
            if rank == 0:
                cloneOf = PARENT_MARKER if len(family) > 1 else ''
            else:
                cloneOf = parentId
            members.append(FamilyMember(index, format_archive_id(n), cloneOf))
            n += 1
    return members

def build_members(records):
    families = [resolve_family(records, f) for f in group_families(records)]
    return assign_archive_ids(families)
