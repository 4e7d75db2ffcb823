"""Movie name to ghibli.jp works slug lookup."""

import re

GHIBLI_WORKS_BASE = "https://www.ghibli.jp/works/"

# Keys are the movie names as they appear in the corpus directory names,
# including common alternate spellings.
MOVIE_SLUGS: dict[str, str] = {
    # 1984
    "Nausicaä of the Valley of the Wind": "nausicaa",
    "Nausicaa of the Valley of the Wind": "nausicaa",
    # 1986
    "Laputa - Castle in the Sky": "laputa",
    "Castle in the Sky": "laputa",
    # 1988
    "My Neighbor Totoro": "totoro",
    "My Neighbour Totoro": "totoro",
    "Grave of the Fireflies": "hotaru",
    # 1989
    "Kiki's Delivery Service": "majo",
    "Kikis Delivery Service": "majo",
    # 1991
    "Only Yesterday": "omoide",
    # 1992
    "Porco Rosso": "porco",
    # 1994
    "Pom Poko": "tanuki",
    # 1995
    "Whisper of the Heart": "mimi",
    # 1997
    "Princess Mononoke": "mononoke",
    # 1999
    "My Neighbors the Yamadas": "yamada",
    # 2001
    "Spirited Away": "chihiro",
    # 2002
    "The Cat Returns": "baron",
    # 2004
    "Howl's Moving Castle": "howl",
    "Howls Moving Castle": "howl",
    # 2006
    "Tales from Earthsea": "ged",
    # 2008
    "Ponyo": "ponyo",
    "Ponyo on the Cliff by the Sea": "ponyo",
    # 2010
    "Arrietty": "karigurashi",
    "The Secret World of Arrietty": "karigurashi",
    # 2011
    "From Up on Poppy Hill": "kokurikozaka",
    # 2013
    "The Wind Rises": "kazetachinu",
    "The Tale of the Princess Kaguya": "kaguyahime",
    # 2014
    "When Marnie Was There": "marnie",
    # 2016
    "The Red Turtle": "redturtle",
    # 2020
    "Earwig and the Witch": "aya",
    # 2023
    "The Boy and the Heron": "kimitachi",
}

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def get_movie_slug(movie_name: str) -> str:
    """Resolve a movie name to its slug.

    Lookup order: exact match, case-insensitive match, case-insensitive
    substring match in either direction, then a slug derived from the name.
    """
    if movie_name in MOVIE_SLUGS:
        return MOVIE_SLUGS[movie_name]

    lower_name = movie_name.lower()
    for key, slug in MOVIE_SLUGS.items():
        if key.lower() == lower_name:
            return slug

    # An empty name would be a substring of every key
    if lower_name:
        for key, slug in MOVIE_SLUGS.items():
            lower_key = key.lower()
            if lower_key in lower_name or lower_name in lower_key:
                return slug

    return _NON_ALNUM_RE.sub("-", lower_name).strip("-")


def ghibli_works_url(movie_slug: str) -> str:
    """Link to the movie's page on ghibli.jp."""
    return f"{GHIBLI_WORKS_BASE}{movie_slug}/"
