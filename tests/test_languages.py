import logging
from concurrent.futures import ThreadPoolExecutor

from cdndat.binary import TITLE_SLOTS, DEFAULT_TITLE
from cdndat.languages import (Language, sanitize_title, resolve_languages, primary_language, classify,
                              group_titles, sort_languages, language_from_code)
from cdndat.regions import Region


def slots(**titles):
    return [titles.get(s) for s in TITLE_SLOTS]

def never(text):
    return []

def fixed(*langs):
    return lambda text: list(langs)


def test_sanitize_title():
    assert sanitize_title('Nintendo DSi Sound\nNintendo') == 'Sound'
    assert sanitize_title('Mario Clock\nNintendo') == 'Clock'
    assert sanitize_title('Dr. Kawashima\'s BrainTraining 2\nNintendo') == 'Dr Kawashimas Brain Training'
    assert sanitize_title('Flipnote Studio') == 'Flipnote Studio'

def test_sanitize_title_drops_acronyms_and_title_cases_long_caps():
    assert sanitize_title('UFO BOXLIFE Puzzle\nArc') == 'Boxlife Puzzle'

def test_sanitize_title_ignores_case():
    assert sanitize_title('TETRIS PARTY\nHUDSON') == sanitize_title('Tetris Party\nHudson') == 'Tetris Party'

def test_sanitize_title_empty():
    assert sanitize_title(None) == ''
    assert sanitize_title('  ') == ''

def test_group_titles_skips_absent_and_default():
    groups = group_titles(slots(En='Tetris Party\nHudson', Fr='Tetris Party\nHudson', De=DEFAULT_TITLE))
    assert groups == [('Tetris Party', [Language.En, Language.Fr])]

def test_single_slot_is_confirmed():
    confirmed, nebulous = resolve_languages(slots(Ja='テトリス\nハドソン'), Region.Japan, classify=never)
    assert confirmed == [Language.Ja]
    assert nebulous == []

def test_unique_titles_are_all_confirmed():
    confirmed, nebulous = resolve_languages(slots(En='Puzzle League\nNintendo', Fr='Ligue de puzzles\nNintendo'),
                                            Region.Europe, classify=never)
    assert sorted(confirmed) == [Language.En, Language.Fr]
    assert nebulous == []

def test_conflict_picks_classifier_choice():
    titles = slots(En='Puzzle League\nNintendo', Fr='Puzzle League\nNintendo', De='Puzzle League\nNintendo')
    confirmed, nebulous = resolve_languages(titles, Region.Europe, classify=fixed(Language.Es, Language.En))
    assert confirmed == [Language.En]
    assert nebulous == [Language.En]

def test_conflict_prefers_expected_languages():
    titles = slots(Es='Tetris Party\nHudson', De='Tetris Party\nHudson')
    confirmed, nebulous = resolve_languages(titles, Region.Germany, classify=fixed(Language.Es, Language.De))
    assert confirmed == [Language.De]
    assert nebulous == [Language.De]

def test_conflict_skips_already_confirmed():
    titles = slots(En='Art Style\nNintendo', Fr='Art Style\nNintendo', De='Kunststil\nNintendo')
    confirmed, nebulous = resolve_languages(titles, Region.Europe, classify=fixed(Language.De, Language.Fr))
    assert sorted(confirmed) == [Language.Fr, Language.De]
    assert nebulous == [Language.Fr]

def test_conflict_falls_back_to_region_default(caplog):
    titles = slots(Fr='Art Style\nNintendo', It='Art Style\nNintendo')
    with caplog.at_level(logging.WARNING):
        confirmed, nebulous = resolve_languages(titles, Region.USA, classify=never)
    assert confirmed == [Language.En]
    assert nebulous == [Language.En]
    assert 'default' in caplog.text

def test_conflict_winner_always_recorded():
    # Default language already known from another slot, the conflict is still accounted for
    titles = slots(En='Moving Words\nSomeone', Fr='Art Style\nNintendo', It='Art Style\nNintendo')
    confirmed, nebulous = resolve_languages(titles, Region.USA, classify=never)
    assert confirmed == [Language.En]
    assert nebulous == [Language.En]

def test_system_titles_limited_to_console_languages():
    titles = slots(En='Sound\nNintendo', Ja='Sound\nNintendo')
    confirmed, _ = resolve_languages(titles, Region.Japan, system=True, classify=fixed(Language.En, Language.Ja))
    assert confirmed == [Language.Ja]

def test_nothing_usable_falls_back_to_region_default():
    confirmed, nebulous = resolve_languages(slots(), Region.Korea, classify=never)
    assert confirmed == [Language.Ko]
    assert nebulous == [Language.Ko]

def test_authoritative_languages_win():
    confirmed, nebulous = resolve_languages(slots(En='Something\nSomeone'), Region.USA,
                                            authoritative=[Language.En, Language.Fr, Language.En], classify=never)
    assert confirmed == [Language.En, Language.Fr]
    assert nebulous == []

def test_primary_language():
    assert primary_language([Language.Fr, Language.En], Region.Europe) == Language.En
    assert primary_language([Language.Ja, Language.En], Region.Japan) == Language.Ja
    # Neither is expected in Korea, enumeration order decides
    assert primary_language([Language.Fr, Language.De], Region.Korea) == Language.Fr

def test_sort_languages_output_order():
    assert sort_languages([Language.Ko, Language.Es, Language.En, Language.Ja]) == [
        Language.En, Language.Ja, Language.Es, Language.Ko]

def test_language_from_code():
    assert language_from_code('EN') == Language.En
    assert language_from_code('zh-tw') == Language.Zh
    assert language_from_code('xx') is None

def test_classify_empty_text():
    assert classify('') == []
    assert classify('   ') == []

def test_classify_from_a_pool():
    text = 'Das ist ein ganz normaler deutscher Satz'
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(classify, [text]*8))
    assert all(r == results[0] for r in results)
    assert results[0][0] == Language.De
