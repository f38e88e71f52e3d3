# -*- coding: utf-8 -*-

# Working out which languages a title supports from the localized titles in its ROM banner.

import re
import enum
import logging
import threading

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from .binary import TITLE_SLOTS, DEFAULT_TITLE
from .regions import Region, decompose, primary_region, region_name

log = logging.getLogger(__name__)

# Otherwise langdetect is non-deterministic across runs
DetectorFactory.seed = 0

# langdetect loads its profiles into a shared factory on first use and seeds the global
# random module on every detection, so detections are serialized
_detectLock = threading.Lock()


class Language(enum.IntEnum):
    # Declared in catalog output order
    En = 0
    Ja = 1
    Fr = 2
    De = 3
    Es = 4
    It = 5
    Nl = 6
    Pt = 7
    Sv = 8
    No = 9
    Da = 10
    Fi = 11
    Zh = 12
    Ko = 13
    Pl = 14
    Ru = 15


LANGUAGE_NAMES = {
    Language.En: 'English',
    Language.Ja: 'Japanese',
    Language.Fr: 'French',
    Language.De: 'German',
    Language.Es: 'Spanish',
    Language.It: 'Italian',
    Language.Nl: 'Dutch',
    Language.Pt: 'Portuguese',
    Language.Sv: 'Swedish',
    Language.No: 'Norwegian',
    Language.Da: 'Danish',
    Language.Fi: 'Finnish',
    Language.Zh: 'Chinese',
    Language.Ko: 'Korean',
    Language.Pl: 'Polish',
    Language.Ru: 'Russian',
}

# ISO 639-1 codes, as used by langdetect and the eShop
LANGUAGE_CODES = {l.name.lower(): l for l in Language}
LANGUAGE_CODES.update({'zh-cn': Language.Zh, 'zh-tw': Language.Zh})

REGION_EXPECTED_LANGUAGES = {
    Region.USA:          (Language.En, Language.Ja, Language.Es),
    Region.Japan:        (Language.Ja, Language.En),
    Region.Europe:       (Language.En, Language.Fr, Language.De, Language.It),
    Region.Australia:    (Language.En, Language.Ja),
    Region.Korea:        (Language.Ko, Language.Ja, Language.En),
    Region.China:        (Language.Zh, Language.Ja, Language.En),
    Region.Germany:      (Language.De, Language.Ja),
    Region.France:       (Language.Fr, Language.En, Language.Ja),
    Region.Italy:        (Language.It, Language.En),
    Region.Spain:        (Language.Es,),
    Region.Netherlands:  (Language.De,),
    Region.SouthAmerica: (Language.Pt, Language.Es, Language.En),
    Region.World:        (Language.En, Language.Ja),
}

# Languages the console settings offer per region. System titles have no
# language selector of their own, so they are only ever in one of these.
REGION_SYSTEM_LANGUAGES = {
    Region.USA:          (Language.En, Language.Fr, Language.Es),
    Region.Japan:        (Language.Ja,),
    Region.Europe:       (Language.En, Language.Fr, Language.De, Language.It, Language.Es),
    Region.Australia:    (Language.En,),
    Region.Korea:        (Language.Ko,),
    Region.China:        (Language.Zh,),
    Region.Germany:      (Language.En, Language.Fr, Language.De, Language.It, Language.Es),
    Region.France:       (Language.En, Language.Fr, Language.De, Language.It, Language.Es),
    Region.Italy:        (Language.En, Language.Fr, Language.De, Language.It, Language.Es),
    Region.Spain:        (Language.En, Language.Fr, Language.De, Language.It, Language.Es),
    Region.Netherlands:  (Language.En, Language.Fr, Language.De, Language.It, Language.Es),
    Region.SouthAmerica: (Language.En, Language.Fr, Language.Es),
    Region.World:        (Language.En, Language.Ja, Language.Fr, Language.De, Language.It, Language.Es),
}

CONFUSING_CHARACTERS_RE = re.compile(r'[.?!:;\'"™®©×/\\0-9]')
CAMEL_CASE_RE = re.compile(r'(?<![A-Z])(?=[A-Z])')
TRIM_CHARS = ' 　\t\r\n\0'

# Words that show up in titles of every language and only confuse the classifier
CONFUSING_PROPER_NOUNS = frozenset((
    'Nintendo', 'iQue', '3DS', 'DSi', 'DS', 'TWL', 'Twl',
    'Banner', 'TWLBanner', 'TWLBannerImage',
    'Mario', 'Luigi', 'Wario', 'Waluigi', 'WarioWare', 'Zelda', 'Link',
    'GmbH',
    'Default', 'Title', 'Subtitle', 'Publisher',
    'default', 'title', 'subtitle', 'publisher',
))


def slot_language(i):
    return Language[TITLE_SLOTS[i]]

def expected_languages(region):
    langs = []
    for r in decompose(region):
        for l in REGION_EXPECTED_LANGUAGES[r]:
            if l not in langs:
                langs.append(l)
    return langs

def system_languages(region):
    return list(REGION_SYSTEM_LANGUAGES.get(primary_region(region), ()))

def default_language(region):
    r = primary_region(region)
    if r not in REGION_EXPECTED_LANGUAGES:
        r = Region.World
    return REGION_EXPECTED_LANGUAGES[r][0]

def language_from_code(code):
    return LANGUAGE_CODES.get((code or '').strip().lower())

def sort_languages(langs):
    return sorted(set(langs))

def title_case(w):
    return w[:1].upper() + w[1:].lower()

def sanitize_title(title):
    if title is None or not title.strip():
        return ''

    text = CONFUSING_CHARACTERS_RE.sub('', title)
    lines = text.split('\n')
    if len(lines) > 1: # Drop the publisher
        text = ' '.join(lines[:-1])

    words = []
    for w in re.split('[ 　]', text):
        for part in CAMEL_CASE_RE.split(w):
            if not part or part in CONFUSING_PROPER_NOUNS or part in words:
                continue
            # Acronyms
            if part == part.upper() and len(part) < 4:
                continue
            words.append(part)
    return ' '.join(title_case(w) for w in words).strip(TRIM_CHARS)

def classify(text):
    text = (text or '').strip(TRIM_CHARS)
    if not text:
        return []
    try:
        with _detectLock:
            ranked = detect_langs(text)
    except LangDetectException as e:
        log.debug('Unable to classify \'%s\': %s', text, e)
        return []

    langs = []
    for r in ranked:
        l = language_from_code(r.lang)
        if l is not None and l not in langs:
            langs.append(l)
    if langs:
        log.debug('The most likely language for \'%s\' is %s.', text, langs[0].name)
    return langs


# Each link below takes what has been settled so far and returns what it adds.

def authoritative_link(authoritative):
    if not authoritative:
        return None
    confirmed = []
    for l in authoritative:
        if l not in confirmed:
            confirmed.append(l)
    return confirmed, []

def group_titles(titles):
    # (sanitized text, [languages]) in order of first appearance
    groups = {}
    for i, t in enumerate(titles):
        if i >= len(TITLE_SLOTS) or t is None or t.lower() == DEFAULT_TITLE:
            continue
        groups.setdefault(sanitize_title(t), []).append(slot_language(i))
    return list(groups.items())

def unique_link(groups):
    return [langs[0] for _, langs in groups if len(langs) == 1]

def conflict_candidates(text, groupLangs, region, system, classify):
    ranked = [l for l in classify(text) if l in groupLangs]
    if system:
        allowed = system_languages(region)
        ranked = [l for l in ranked if l in allowed]
    expected = expected_languages(region)
    # Stable, so the classifier order holds within each half
    return sorted(ranked, key=lambda l: 0 if l in expected else 1)

def conflict_link(groups, confirmed, region, system, classify, tid=''):
    added = []
    for text, langs in groups:
        if len(langs) < 2 or not text.strip():
            continue
        log.debug('%s has the same title for %s: \'%s\'', tid, ', '.join(l.name for l in langs), text)

        choice = None
        for n, l in enumerate(conflict_candidates(text, langs, region, system, classify)):
            if l in confirmed or l in added:
                continue
            if n > 0:
                log.debug('Took choice %d (%s) for \'%s\', the ones before it were already known.', n, l.name, text)
            choice = l
            break

        if choice is None:
            choice = default_language(region)
            log.warning('No language could be determined for the conflict \'%s\' of %s. Using the default for %s, %s.',
                        text, tid, region_name(region), choice.name)
        if choice not in added:
            added.append(choice)
    return added

def default_link(region, tid=''):
    l = default_language(region)
    log.warning('No languages were found for %s. Using the default for %s, %s.', tid, region_name(region), l.name)
    return [l]

def resolve_languages(titles, region, system=False, authoritative=None, classify=classify, tid=''):
    # Returns (confirmed, nebulous)
    result = authoritative_link(authoritative)
    if result is not None:
        return result

    groups = group_titles(titles)
    confirmed = unique_link(groups)
    nebulous = conflict_link(groups, confirmed, region, system, classify, tid)
    confirmed += [l for l in nebulous if l not in confirmed]

    if not confirmed:
        nebulous = default_link(region, tid)
        confirmed = list(nebulous)
    return confirmed, nebulous

def primary_language(confirmed, region):
    expected = expected_languages(region)
    def rank(l):
        return (expected.index(l) if l in expected else len(expected), int(l))
    return min(confirmed, key=rank)
