# -*- coding: utf-8 -*-

# No-Intro style display names from ROM banner titles.

import re

import pykakasi
from unidecode import unidecode

from .languages import Language

TRADEMARK_RE = re.compile(r'[™®©]')
DISALLOWED_RE = re.compile(r'[^a-zA-Z0-9 $!#%\'()+,\-.;=@\[\]\^_{}~]')
WHITESPACE_RE = re.compile(r'\s+')

COMMON_ARTICLES = ('the', 'a', 'an')

_kakasi = None


def kakasi():
    global _kakasi
    if _kakasi is None:
        _kakasi = pykakasi.kakasi()
    return _kakasi

def romanize_japanese(text):
    parts = []
    for item in kakasi().convert(text):
        orig = item['orig']
        if orig.isascii():
            parts.append(orig)
            continue
        hepburn = item['hepburn'] or orig
        parts.append(' %s%s ' % (hepburn[:1].upper(), hepburn[1:]))
    return ''.join(parts)

def romanize(text, language):
    if text.isascii():
        return text
    if language == Language.Ja:
        return romanize_japanese(text)
    if language in (Language.Zh, Language.Ko):
        return unidecode(text)
    return text

def clean_part(text, language):
    text = romanize(text, language)
    text = TRADEMARK_RE.sub('', text)
    text = unidecode(text)
    text = DISALLOWED_RE.sub('', text)
    return text.strip(' :-')

def move_article(title):
    # "The Legend of Zelda" -> "Legend of Zelda, The"
    for article in COMMON_ARTICLES:
        if title.lower().startswith(article + ' '):
            return '%s, %s' % (title[len(article) + 1:], title[:len(article)])
    return title

def canonical_display_name(title, subtitle=None, language=Language.En):
    name = move_article(clean_part(title, language))
    if subtitle is not None and subtitle.strip():
        name = '%s - %s' % (name, clean_part(subtitle, language))
    return WHITESPACE_RE.sub(' ', name).strip(' .')

def display_name_from_banner(bannerTitle, language):
    # Banner titles are "title\n[subtitle\n]publisher"
    if bannerTitle is None:
        return ''
    lines = bannerTitle.split('\n')
    subtitle = lines[1] if len(lines) > 2 else None
    return canonical_display_name(lines[0], subtitle, language)
