# -*- coding: utf-8 -*-

# Writing the DAT-o-MATIC (Logiqx) XML dat, and the media/titles CSV exports.

import os
import csv
import shutil
import logging
import xml.etree.ElementTree as ET
from xml.dom import minidom

from .binary import safe_file_name
from .collect import newest_metadata_index
from .languages import Language, LANGUAGE_NAMES, sort_languages
from .provenance import enumerate_entries, check_meta_files, source_groups
from .regions import Region, region_name

log = logging.getLogger(__name__)

DOCTYPE = '<!DOCTYPE datafile PUBLIC "http://www.logiqx.com/Dats/datafile.dtd" "-//Logiqx//DTD ROM Management Datafile//EN">'

TITLES_FILE_NAME = 'titles.csv'
NDS_EXTENSION = 'nds'

FORMAT_ENCRYPTED = 'CDN'
FORMAT_DECRYPTED = 'CDNdec'

METHOD_ESHOP = '3DS eShop Port'
METHOD_GUESSED = 'Guessed From ROM Titles'

MEDIA_LANGUAGES = (Language.En, Language.Ja, Language.Fr, Language.De, Language.Es, Language.It, Language.Zh, Language.Ko)

SERIAL_ATTRIBUTES = ('mediaserial1', 'mediaserial2', 'pcbserial', 'romchipserial1', 'romchipserial2',
                     'lockoutserial', 'savechipserial', 'chipserial', 'boxserial', 'mediastamp', 'boxbarcode')


def set_attributes(elem, attrs):
    for k, v in attrs:
        elem.set(k, '' if v is None else str(v))
    return elem

def format_date(d):
    return d.strftime('%Y-%m-%d') if d is not None else ''

def language_list(langs):
    return ','.join(l.name for l in sort_languages(langs))

def rom_element(parent, entry):
    h = entry.hashes
    return set_attributes(ET.SubElement(parent, 'rom'), (
        ('dirname',   ''),
        ('forcename', entry.displayName or entry.fileName),
        ('extension', ''),
        ('item',      ''),
        ('date',      format_date(entry.modTime)),
        ('format',    FORMAT_ENCRYPTED if entry.encrypted else FORMAT_DECRYPTED),
        ('version',   entry.version),
        ('utype',     ''),
        ('size',      h.size),
        ('crc',       h.crc32),
        ('md5',       h.md5),
        ('sha1',      h.sha1),
        ('sha256',    h.sha256),
        ('serial',    entry.serial),
        ('bad',       '0'),
    ))

def source_element(parent, record, group):
    source = ET.SubElement(parent, 'source')
    date = format_date(group.dumpDate)
    set_attributes(ET.SubElement(source, 'details'), (
        ('section',          'Trusted Dump'),
        ('rominfo',          ''),
        ('dumpdate',         date),
        ('knowndumpdate',    '1' if group.known else '0'),
        ('releasedate',      date),
        ('knownreleasedate', '0'),
        ('dumper',           group.contributor),
        ('project',          ''),
        ('session',          ''),
        ('tool',             group.tool),
        ('origin',           'CDN'),
        ('comment1',         ''),
        ('comment2',         ''),
        ('link1',            ''),
        ('link2',            ''),
        ('region',           ''),
        ('mediatitle',       ''),
    ))
    set_attributes(ET.SubElement(source, 'serials'),
                   [(a, '') for a in SERIAL_ATTRIBUTES] +
                   [('digitalserial1', record.titleIdLower), ('digitalserial2', record.gameCode)])
    for entry in group.entries:
        rom_element(source, entry)
    return source

def game_element(parent, record, member, groups):
    game = ET.SubElement(parent, 'game', name=record.displayName)
    set_attributes(ET.SubElement(game, 'archive'), (
        ('number',         member.archiveId),
        ('name',           record.displayName),
        ('namealt',        ''),
        ('region',         region_name(Region(record.region))),
        ('languages',      language_list(record.languages)),
        ('version',        ''),
        ('devstatus',      ''),
        ('additional',     ''),
        ('special1',       'System' if record.system else ''),
        ('special2',       'Removed' if record.deleted else ''),
        ('gameid',         ''),
        ('clone',          member.cloneOf),
        ('regionalparent', ''),
    ))
    set_attributes(ET.SubElement(game, 'flags'), (
        ('bios',     '0'),
        ('licensed', '1'),
        ('pirate',   '0'),
        ('physical', '0'),
        ('complete', '1'),
        ('nodump',   '0'),
        ('public',   '1'),
        ('dat',      '1'),
    ))
    for group in groups:
        source_element(game, record, group)
    return game

def build_datafile(records, members, sourcesOf):
    datafile = ET.Element('datafile')
    ET.SubElement(datafile, 'header')
    for m in members:
        record = records[m.index]
        log.info('%s - %s - %s', m.archiveId, record.titleId, record.gameCode)
        game_element(datafile, record, m, sourcesOf(record))
    return datafile

def to_xml(datafile):
    string = ET.tostring(datafile, encoding='utf-8')
    reparsed = minidom.parseString(string)
    text = reparsed.toprettyxml(encoding='utf-8', indent='  ').decode()
    decl, _, body = text.partition('\n')
    return '%s\n%s\n%s' % (decl, DOCTYPE, body)

def media_row(record, member):
    langs = set(record.languages)
    row = [member.archiveId,
           METHOD_ESHOP if record.usedEshop else METHOD_GUESSED,
           ','.join(l.name for l in record.nebulousLanguages),
           record.title_only(record.primaryLanguage) if len(langs) == 1 else '']
    row += [record.title_only(l) if l in langs else '' for l in MEDIA_LANGUAGES]
    return row

def write_media(records, members, mediaPath):
    titlesPath = os.path.join(os.path.dirname(mediaPath), TITLES_FILE_NAME)
    with open(mediaPath, 'w', newline='', encoding='utf-8') as mf, \
         open(titlesPath, 'w', newline='', encoding='utf-8') as tf:
        media = csv.writer(mf)
        titles = csv.writer(tf)
        media.writerow(['Archive ID', 'Language Determination Method', 'Nebulously-Determined Languages', 'Only Title'] +
                       [LANGUAGE_NAMES[l] for l in MEDIA_LANGUAGES])
        titles.writerow(['Title ID', 'No-Intro Title'])
        for m in members:
            record = records[m.index]
            media.writerow(media_row(record, m))
            titles.writerow([record.titleId, record.displayName])
    log.info('Wrote \'%s\' and \'%s\'.', mediaPath, titlesPath)
    return titlesPath

def make_sources(primaryName, primaryTool, contributors=()):
    def sourcesOf(record):
        check_meta_files(record)
        return source_groups(record, enumerate_entries(record), primaryName, primaryTool, contributors)
    return sourcesOf

def write_catalog(records, members, outPath, sourcesOf, mediaPath=None):
    log.info('Beginning the dat file creation at \'%s\' (%d titles).', outPath, len(members))
    datafile = build_datafile(records, members, sourcesOf)
    with open(outPath, 'w', encoding='utf-8') as f:
        f.write(to_xml(datafile)[:-1])
    if mediaPath:
        write_media(records, members, mediaPath)
    log.info('Completed the dat file \'%s\'.', outPath)
    return outPath

def nds_file_name(record):
    return safe_file_name('%s (%s).%s' % (record.displayName, region_name(record.region), NDS_EXTENSION))

def write_nds_files(records):
    # Copies of the newest ROM of each title under its catalog name, beside the CDN files
    written = []
    for record in records:
        newest = newest_metadata_index(record.metadata)
        newestId = record.metadata[newest].contents[0].name
        content = [d for d in record.decrypted if d.contentId == newestId]
        if not content or not record.displayName:
            log.warning('No ROM copy for %s, it has no name or no decrypted newest content.', record.titleId)
            continue
        outPath = os.path.join(record.titleDir, nds_file_name(record))
        shutil.copyfile(os.path.join(record.titleDir, content[0].fileName), outPath)
        written.append(outPath)
    log.info('Wrote %d ROM copies.', len(written))
    return written
