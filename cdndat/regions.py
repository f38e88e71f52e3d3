# -*- coding: utf-8 -*-

import enum


class Region(enum.IntFlag):
    Unknown      = 0
    USA          = 1
    Japan        = 1 << 1
    Europe       = 1 << 2
    Australia    = 1 << 3
    Korea        = 1 << 4
    China        = 1 << 5
    Germany      = 1 << 6
    France       = 1 << 7
    Italy        = 1 << 8
    Spain        = 1 << 9
    Netherlands  = 1 << 10
    SouthAmerica = 1 << 11
    World        = 1 << 12


# Single regions, in enumeration order
REGIONS = tuple(r for r in Region if r is not Region.Unknown and r.value & (r.value - 1) == 0)

# Used to pick one region out of a multi-region set
PRIMARY_REGION_ORDER = (
    Region.USA,
    Region.Japan,
    Region.Europe,
    Region.Australia,
    Region.Korea,
    Region.China,
    Region.Germany,
    Region.France,
    Region.Italy,
    Region.Spain,
    Region.Netherlands,
    Region.SouthAmerica,
    Region.World,
)

REGION_CODES = {
    'E': Region.USA,
    'J': Region.Japan,
    'P': Region.Europe,
    'U': Region.Australia,
    'K': Region.Korea,
    'V': Region.Europe | Region.Australia,
    'C': Region.China,
    'D': Region.Germany,
    'F': Region.France,
    'I': Region.Italy,
    'S': Region.Spain,
    'O': Region.USA | Region.Europe,
    'X': Region.Europe, # the few titles using it only have European shop pages
    'T': Region.USA | Region.Australia,
    'H': Region.Netherlands,
    'A': Region.World,
}

# Parent selection preference, widest coverage first
REGION_CODE_ORDER = 'AVPOTEUXFDSIHJKC'

# ISO 3166-1 alpha-2 storefront codes. There is no Great Britain region, Europe is the closest.
REGION_TWO_LETTER_CODES = {
    Region.USA:          'US',
    Region.Japan:        'JP',
    Region.Europe:       'GB',
    Region.Australia:    'AU',
    Region.Korea:        'KR',
    Region.China:        'CN',
    Region.Germany:      'DE',
    Region.France:       'FR',
    Region.Italy:        'IT',
    Region.Spain:        'ES',
    Region.Netherlands:  'NL',
    Region.SouthAmerica: 'BR',
}

# Storefronts to also check when looking a title up
REGION_RELATED_REGIONS = {
    Region.USA:          (Region.Europe, Region.SouthAmerica),
    Region.Japan:        (Region.Europe, Region.USA),
    # "Ivy the Kiwi? Mini" is a Europe title with only a USA storefront
    Region.Europe:       (Region.France, Region.Italy, Region.Germany, Region.Netherlands, Region.Spain,
                          Region.USA, Region.SouthAmerica),
    Region.Australia:    (Region.Europe,),
    Region.Korea:        (Region.Japan, Region.China),
    Region.China:        (Region.Japan, Region.Korea),
    Region.Germany:      (Region.Netherlands, Region.Europe),
    Region.France:       (Region.Europe,),
    Region.Italy:        (Region.Europe,),
    Region.Spain:        (Region.Europe,),
    Region.Netherlands:  (Region.Germany, Region.Europe),
    Region.SouthAmerica: (Region.USA,),
    Region.World:        (Region.Europe, Region.USA),
}


def region_from_code(code):
    return REGION_CODES.get(code, Region.World)

def decompose(region):
    return [r for r in REGIONS if region & r]

def primary_region(region):
    for r in PRIMARY_REGION_ORDER:
        if region & r:
            return r
    return Region.Unknown

def region_name(region):
    return ', '.join(r.name for r in decompose(region))

def region_code_rank(code):
    i = REGION_CODE_ORDER.find(code or '?')
    return i if i > -1 else len(REGION_CODE_ORDER)

def lookup_regions(region):
    # Greater specificity first: "Europe, Australia" tries Australia before Europe
    out = []
    for r in reversed(decompose(region)):
        for rr in (r,) + REGION_RELATED_REGIONS[r]:
            if rr not in out:
                out.append(rr)
    return out
