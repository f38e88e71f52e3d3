# -*- coding: utf-8 -*-

# Every file of a title that goes into the catalog, and who gets credited with dumping it.

import os
import logging
from collections import namedtuple
from datetime import datetime, timezone

from .binary import version_to_human
from .hashes import hash_collection, read_hashes, file_mod_time
from .reference import load_membership, load_dates, load_replacements
from .tickets import TICKET_FILE_NAME, dir_index

log = logging.getLogger(__name__)

ENTRY_TICKET   = 'ticket'
ENTRY_METADATA = 'metadata'
ENTRY_CONTENT  = 'content'
ENTRY_MISC     = 'misc'
ENTRY_META     = 'meta'

META_FILE_PREFIX = 'fffe'
META_FILE_FIRST = 0xFFFF # Copies of the metadata count down from fffeffff

CUSTOM_TOOL = 'Custom'

ProvenanceEntry = namedtuple('ProvenanceEntry', ['type', 'encrypted', 'fileName', 'displayName', 'hashes',
                                                 'modTime', 'version', 'serial', 'dumper'])
ProvenanceEntry.__new__.__defaults__ = (None, None, None, None, None)

SourceGroup = namedtuple('SourceGroup', ['contributor', 'dumpDate', 'known', 'tool', 'entries'])

Contributor = namedtuple('Contributor', ['name', 'membership', 'dates', 'replacements', 'dumpDate', 'tool',
                                         'encryptedOnly'])


def version_string(ver):
    return '%d,%s' % (ver, version_to_human(ver))

def local_mod_time(fPath):
    return datetime.fromtimestamp(os.path.getmtime(fPath), timezone.utc)

def file_entries(type, titleDir, fName, displayName=None, version=None, forms=(True, False)):
    fPath = os.path.join(titleDir, fName)
    hashes = read_hashes(fPath)
    if hashes is None:
        return []
    modTime = file_mod_time(fPath)
    return [ProvenanceEntry(type, encrypted, fName, displayName, hashes, modTime, version) for encrypted in forms]

def enumerate_entries(record):
    titleDir = record.titleDir
    files = dir_index(titleDir)
    entries = []

    for fName, ver in record.tickets:
        entries += file_entries(ENTRY_TICKET, titleDir, fName, '%s.%d' % (TICKET_FILE_NAME, ver), version_string(ver))

    for m in record.metadata:
        entries += file_entries(ENTRY_METADATA, titleDir, m.fileName, version=version_string(m.titleVersion))

    for content in record.decrypted:
        version = None
        if content.metadataIndex >= 0:
            version = version_string(record.metadata[content.metadataIndex].titleVersion)

        encPath = os.path.join(titleDir, files.get(content.contentId, content.contentId))
        encHashes = read_hashes(encPath)
        if encHashes is not None:
            entries.append(ProvenanceEntry(ENTRY_CONTENT, True, content.contentId, None, encHashes,
                                           file_mod_time(encPath), version, content.serial))

        decPath = os.path.join(titleDir, content.fileName)
        entries.append(ProvenanceEntry(ENTRY_CONTENT, False, content.contentId, None,
                                       hash_collection.from_file(decPath), local_mod_time(decPath),
                                       version, content.serial))

    for fName in record.misc:
        entries += file_entries(ENTRY_MISC, titleDir, fName, forms=(True,))
    for fName in record.meta:
        entries += file_entries(ENTRY_META, titleDir, fName, forms=(True,))

    return entries

def check_meta_files(record):
    # fffeXXXX files should be one per metadata record, counting down from fffeffff without gaps
    metaIds = sorted((int(f[len(META_FILE_PREFIX):], 16) for f in record.meta
                      if f.lower().startswith(META_FILE_PREFIX)), reverse=True)
    consistent = True
    if len(metaIds) != len(record.metadata):
        log.warning('%s has %d metadata copies but %d metadata records.', record.titleId, len(metaIds), len(record.metadata))
        consistent = False
    for expected, actual in zip(range(META_FILE_FIRST, -1, -1), metaIds):
        if expected != actual:
            log.warning('%s is missing the metadata copy \'%s%04x\'.', record.titleId, META_FILE_PREFIX, expected)
            consistent = False
            break
    return consistent

def group_by_date(entries, dateOf):
    groups = {}
    for e in entries:
        groups.setdefault(dateOf(e), []).append(e)
    # Undated last
    return sorted(groups.items(), key=lambda g: (g[0] is None, g[0] or datetime.min.date()))

def primary_groups(record, entries, name, tool):
    # Encrypted files of a removed title can't be fetched again, only what was decrypted is ours
    local = [e for e in entries if not record.deleted or not e.encrypted]
    groups = []
    for date, grouped in group_by_date(local, lambda e: e.modTime.date() if e.modTime else None):
        groups.append(SourceGroup(name, date, date is not None, tool, grouped))
    return groups

def replace_entry(entries, replacement):
    for i, e in enumerate(entries):
        if e.fileName == replacement.fileName and e.encrypted == replacement.encrypted:
            return entries[:i] + [replacement] + entries[i + 1:]
    log.debug('Nothing to replace with \'%s\'.', replacement.displayName)
    return entries

def contributor_groups(record, entries, contributor):
    tid = record.titleIdLower
    ungrouped = [e for e in entries
                 if (e.encrypted or not contributor.encryptedOnly) and (tid, e.fileName) in contributor.membership]

    hashes = contributor.replacements.get(tid)
    if hashes is not None:
        replacement = ProvenanceEntry(ENTRY_TICKET, True, TICKET_FILE_NAME, '%s.%s' % (TICKET_FILE_NAME, hashes.crc32),
                                      hashes, dumper=contributor.name)
        ungrouped = replace_entry(ungrouped, replacement)

    groups = []
    for date, grouped in group_by_date(ungrouped, lambda e: contributor.dates.get((tid, e.fileName))):
        if date is None:
            groups.append(SourceGroup(contributor.name, contributor.dumpDate, False, contributor.tool, grouped))
        else:
            groups.append(SourceGroup(contributor.name, date, True, contributor.tool, grouped))
    return groups

def source_groups(record, entries, primaryName, primaryTool, contributors=()):
    groups = primary_groups(record, entries, primaryName, primaryTool)
    for c in contributors:
        groups += contributor_groups(record, entries, c)
    return [g for g in groups if g.entries]

def load_contributor(config, referencePath):
    def ref(key):
        fName = config.get(key)
        return os.path.join(referencePath, fName) if fName else None

    dumpDate = config.get('dumpDate')
    return Contributor(name=config['name'],
                       membership=load_membership(ref('membershipFile')),
                       dates=load_dates(ref('datesFile')) if ref('datesFile') else {},
                       replacements=load_replacements(ref('replacementsFile')) if ref('replacementsFile') else {},
                       dumpDate=datetime.strptime(dumpDate, '%Y-%m-%d').date() if dumpDate else None,
                       tool=config.get('tool', CUSTOM_TOOL),
                       encryptedOnly=config.get('encryptedOnly', True))
