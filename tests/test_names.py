import pytest

from cdndat.languages import Language
from cdndat.names import canonical_display_name, display_name_from_banner, move_article


def test_moves_leading_article():
    assert canonical_display_name('The Legend of Zelda') == 'Legend of Zelda, The'
    assert canonical_display_name('A Kappa\'s Trail') == 'Kappa\'s Trail, A'
    assert canonical_display_name('an Apple') == 'Apple, an'

def test_article_needs_a_following_space():
    assert move_article('Theatre Works') == 'Theatre Works'
    assert move_article('Anagram Quest') == 'Anagram Quest'

def test_strips_trademarks_and_disallowed_characters():
    assert canonical_display_name('Tetris® Party Live™') == 'Tetris Party Live'
    assert canonical_display_name('Art Style: PiCTOBiTS') == 'Art Style PiCTOBiTS'

def test_folds_to_ascii():
    assert canonical_display_name('Pokémon Mystery Dungeon') == 'Pokemon Mystery Dungeon'

def test_subtitle_appended_without_article_movement():
    name = canonical_display_name('Brain Age Express', 'The Math Edition')
    assert name == 'Brain Age Express - The Math Edition'

def test_collapses_whitespace_and_trims_periods():
    assert canonical_display_name('  Dr.   Mario   Express. ') == 'Dr. Mario Express'

@pytest.mark.parametrize('title, subtitle', [
    ('The Legend of Zelda', None),
    ('Art Style: PiCTOBiTS', None),
    ('Dr. Mario Express', None),
    ('A Kappa\'s Trail', None),
    ('Brain Age Express', 'Arts & Letters'),
])
def test_idempotent(title, subtitle):
    once = canonical_display_name(title, subtitle)
    assert canonical_display_name(once) == once

def test_japanese_is_romanized():
    name = canonical_display_name('ことばのパズル', language=Language.Ja)
    assert name
    assert name.isascii()
    assert canonical_display_name(name, language=Language.Ja) == name

def test_korean_is_romanized():
    name = canonical_display_name('한국어', language=Language.Ko)
    assert name and name.isascii()

def test_display_name_from_banner():
    assert display_name_from_banner('Tetris Party Live\nHudson Soft', Language.En) == 'Tetris Party Live'
    assert display_name_from_banner('Brain Age Express\nMath\nNintendo', Language.En) == 'Brain Age Express - Math'
    assert display_name_from_banner(None, Language.En) == ''
