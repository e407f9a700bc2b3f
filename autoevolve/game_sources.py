"""
Game Source Adapter

Fetches candidate games from Lichess (human and vs-AI) and Chess.com and
normalizes them into GameRecord. One request per (provider, player) is issued
concurrently; a failing provider yields zero games and never aborts the batch.
"""

import asyncio
import json
import logging
import random
from datetime import datetime, timezone
from urllib.parse import quote

import httpx

from autoevolve.config import USER_AGENT, Provider
from autoevolve.errors import MalformedRecord, ProviderUnavailable
from autoevolve.models import GameRecord
from autoevolve.moves import extract_moves

logger = logging.getLogger(__name__)

LICHESS_FINISHED = {"mate", "resign", "outoftime", "timeout", "draw", "stalemate"}
CHESSCOM_DRAWS = {
    "agreed", "repetition", "stalemate", "insufficient", "50move", "timevsinsufficient",
}


async def _get(
    session: httpx.AsyncClient,
    provider: Provider,
    url: str,
    params: dict | None,
    headers: dict,
    timeout: float,
    retry_backoff: float,
) -> httpx.Response:
    """GET with one bounded retry on 429. Raises ProviderUnavailable."""
    for attempt in range(2):
        try:
            resp = await session.get(url, params=params, headers=headers, timeout=timeout)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(provider.name, f"transport error: {e!r}") from e
        if resp.status_code == 429 and attempt == 0:
            logger.warning("%s rate limited, retrying once in %.1fs", provider.name, retry_backoff)
            await asyncio.sleep(retry_backoff)
            continue
        if resp.status_code >= 300:
            raise ProviderUnavailable(provider.name, f"HTTP {resp.status_code}", resp.status_code)
        return resp
    raise ProviderUnavailable(provider.name, "rate limited (429)", 429)


def _rating(value) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _section(data: dict, key: str) -> dict:
    """Nested object ``data[key]``; absent means empty, any other type is malformed."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedRecord(f"{key!r} is not an object")
    return value


def _end_time(data: dict) -> float | None:
    value = data.get("end_time")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def parse_lichess_game(data: dict, provider: Provider) -> GameRecord:
    """Normalize one Lichess NDJSON game object."""
    if not isinstance(data, dict):
        raise MalformedRecord("record is not an object")
    game_id = data.get("id")
    pgn = data.get("pgn")
    if not game_id or not isinstance(pgn, str) or not pgn:
        raise MalformedRecord("missing id or pgn")
    if data.get("status") not in LICHESS_FINISHED:
        raise MalformedRecord(f"{game_id}: unfinished status {data.get('status')!r}")

    winner = data.get("winner")
    if winner not in ("white", "black"):
        winner = "draw"

    players = _section(data, "players")
    names = {}
    ratings = {}
    for color in ("white", "black"):
        p = _section(players, color)
        user = _section(p, "user")
        ai_level = _rating(p.get("aiLevel"))
        if user.get("name"):
            names[color] = str(user["name"])
            ratings[color] = _rating(p.get("rating"))
        elif ai_level:
            names[color] = f"Stockfish-L{ai_level}"
            ratings[color] = 1500 + ai_level * 200
        else:
            names[color] = "Unknown"
            ratings[color] = _rating(p.get("rating"))

    return GameRecord(
        id=f"bot_{game_id}" if provider.vs_ai else str(game_id),
        move_text=pgn,
        declared_winner=winner,
        provider_tag=provider.name,
        moves=tuple(extract_moves(pgn)),
        white_name=names["white"],
        black_name=names["black"],
        white_rating=ratings["white"],
        black_rating=ratings["black"],
        time_control=data.get("speed"),
        tier=provider.tier,
    )


def parse_chesscom_game(data: dict, provider: Provider) -> GameRecord:
    """Normalize one game from a Chess.com monthly archive."""
    if not isinstance(data, dict):
        raise MalformedRecord("record is not an object")
    pgn = data.get("pgn")
    url = data.get("url")
    game_id = data.get("uuid") or (url.rstrip("/").split("/")[-1] if isinstance(url, str) else None)
    if not game_id or not isinstance(pgn, str) or not pgn:
        raise MalformedRecord("missing id or pgn")

    white = _section(data, "white")
    black = _section(data, "black")
    if white.get("result") == "win":
        winner = "white"
    elif black.get("result") == "win":
        winner = "black"
    elif white.get("result") in CHESSCOM_DRAWS:
        winner = "draw"
    else:
        raise MalformedRecord(f"{game_id}: no decisive or drawn result")

    return GameRecord(
        id=str(game_id),
        move_text=pgn,
        declared_winner=winner,
        provider_tag=provider.name,
        moves=tuple(extract_moves(pgn)),
        white_name=str(white.get("username") or "Unknown"),
        black_name=str(black.get("username") or "Unknown"),
        white_rating=_rating(white.get("rating")),
        black_rating=_rating(black.get("rating")),
        time_control=data.get("time_class"),
        tier=provider.tier,
    )


async def fetch_lichess_games(
    session: httpx.AsyncClient,
    provider: Provider,
    player: str,
    since: datetime,
    limit: int,
    token: str | None = None,
    timeout: float = 15.0,
    retry_backoff: float = 2.0,
) -> list[GameRecord]:
    """Fetch a player's recent finished games from the Lichess NDJSON export."""
    headers = {"Accept": "application/x-ndjson", "User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    params = {
        "since": int(since.timestamp() * 1000),
        "max": limit * 2 if provider.vs_ai else limit,
        "pgnInJson": "true",
        "clocks": "false",
        "opening": "true",
    }
    if provider.vs_ai:
        params["vs"] = "ai"

    url = f"{provider.endpoint}/{quote(player)}"
    resp = await _get(session, provider, url, params, headers, timeout, retry_backoff)

    games = []
    for line in resp.text.splitlines():
        if not line.strip():
            continue
        try:
            games.append(parse_lichess_game(json.loads(line), provider))
        except (ValueError, MalformedRecord) as e:
            logger.debug("Skipping malformed %s record: %s", provider.name, e)
        if len(games) >= limit:
            break
    return games


def _months_between(since: datetime, now: datetime) -> list[tuple[int, int]]:
    months = []
    year, month = since.year, since.month
    while (year, month) <= (now.year, now.month):
        months.append((year, month))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return months


async def fetch_chesscom_games(
    session: httpx.AsyncClient,
    provider: Provider,
    player: str,
    since: datetime,
    limit: int,
    now: datetime | None = None,
    timeout: float = 15.0,
    retry_backoff: float = 2.0,
) -> list[GameRecord]:
    """Fetch a player's games from the Chess.com monthly archives covering ``since``."""
    now = now or datetime.now(timezone.utc)
    headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
    since_ts = since.timestamp()

    raw_games = []
    for year, month in _months_between(since, now):
        url = f"{provider.endpoint}/{quote(player.lower())}/games/{year}/{month:02d}"
        try:
            resp = await _get(session, provider, url, None, headers, timeout, retry_backoff)
        except ProviderUnavailable as e:
            if e.status_code == 404:
                logger.info("Chess.com: no games for %s in %d/%02d", player, year, month)
                continue
            raise
        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderUnavailable(provider.name, "invalid JSON body") from e
        if not isinstance(payload, dict):
            raise ProviderUnavailable(provider.name, "unexpected JSON body")
        raw_games.extend(g for g in payload.get("games") or [] if isinstance(g, dict))

    recent = []
    for data in raw_games:
        end_time = _end_time(data)
        if end_time is None:
            logger.debug("Skipping malformed %s record: end_time %r", provider.name, data.get("end_time"))
        elif end_time >= since_ts:
            recent.append((end_time, data))
    recent.sort(key=lambda item: item[0], reverse=True)

    games = []
    for _, data in recent:
        try:
            games.append(parse_chesscom_game(data, provider))
        except MalformedRecord as e:
            logger.debug("Skipping malformed %s record: %s", provider.name, e)
        if len(games) >= limit:
            break
    return games


def sample_players(provider: Provider, count: int, rng: random.Random) -> list[str]:
    """Pick ``count`` distinct players from the provider's roster."""
    roster = list(provider.players)
    rng.shuffle(roster)
    return roster[:count]


async def fetch_candidates(
    session: httpx.AsyncClient,
    providers: list[Provider] | tuple[Provider, ...],
    since: datetime,
    per_provider_limit: int,
    *,
    min_plies: int = 20,
    players_per_provider: int = 3,
    rng: random.Random | None = None,
    token: str | None = None,
    timeout: float = 15.0,
    retry_backoff: float = 2.0,
    semaphore: asyncio.Semaphore | None = None,
) -> list[GameRecord]:
    """Fan out to every (provider, player), fan in the games that are long enough.

    Each provider contributes at most ``per_provider_limit`` games in total,
    however many of its players were sampled.
    """
    rng = rng or random.Random()
    semaphore = semaphore or asyncio.Semaphore(4)

    async def one(provider: Provider, player: str) -> list[GameRecord]:
        async with semaphore:
            try:
                if provider.kind == "chesscom":
                    return await fetch_chesscom_games(
                        session, provider, player, since, per_provider_limit,
                        timeout=timeout, retry_backoff=retry_backoff,
                    )
                return await fetch_lichess_games(
                    session, provider, player, since, per_provider_limit,
                    token=token, timeout=timeout, retry_backoff=retry_backoff,
                )
            except ProviderUnavailable as e:
                logger.warning("Provider %s unavailable for %s: %s", provider.name, player, e)
                return []

    pairs = [
        (provider, player)
        for provider in providers
        for player in sample_players(provider, players_per_provider, rng)
    ]
    results = await asyncio.gather(*(one(provider, player) for provider, player in pairs))

    candidates = []
    taken: dict[str, int] = {}
    too_short = 0
    for (provider, _), games in zip(pairs, results):
        for game in games:
            if len(game.moves) < min_plies:
                too_short += 1
                continue
            if taken.get(provider.name, 0) >= per_provider_limit:
                break
            taken[provider.name] = taken.get(provider.name, 0) + 1
            candidates.append(game)
    logger.info("Fetched %d candidate games (%d too short)", len(candidates), too_short)
    return candidates
