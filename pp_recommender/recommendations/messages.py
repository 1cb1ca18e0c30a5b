"""Player-facing replies, in English or French."""
from __future__ import annotations

from .filters import mods_to_string
from .models import ChartMetadata, ScoreRecord

CHART_URL = "https://osu.ppy.sh/b/{beatmap_id}"


def _is_french(locale: str | None) -> bool:
    return (locale or "").upper() == "FR"


def _duration(seconds: int | None) -> str:
    if seconds is None:
        return "?"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}:{rest:02d}"


def _stats(chart: ChartMetadata) -> str:
    parts = []
    for label, value in (("AR", chart.ar), ("CS", chart.cs), ("OD", chart.od), ("HP", chart.hp)):
        if value is not None:
            parts.append(f"{label}{value:g}")
    bpm = chart.bpm
    if bpm:
        parts.append(f"{bpm:g} BPM")
    return " ".join(parts) or "-"


def _chart_link(record: ScoreRecord, chart: ChartMetadata) -> str:
    artist = chart.artist or record.artist or "?"
    title = chart.title or record.title or "?"
    url = CHART_URL.format(beatmap_id=record.beatmap_id)
    return f"[{url} {artist} - {title}]"


def found_message(
    locale: str | None,
    record: ScoreRecord,
    chart: ChartMetadata,
    target: float | None = None,
) -> str:
    version = chart.version or record.version or "?"
    stars = chart.stars if chart.stars is not None else record.stars
    stars_text = f"{stars:.2f} ★" if stars is not None else "? ★"
    length = chart.length if chart.length is not None else record.length
    target_text = f"{target:.0f}pp" if target is not None else "-"
    mods = mods_to_string(record.mods)
    link = _chart_link(record, chart)
    pp_text = f"{record.pp:.0f}pp"

    if _is_french(locale):
        return (
            f"J'ai trouvé cette beatmap que tu n'as probablement pas faite, d'après un score de {pp_text} ! "
            f"↪ {link} ({version}) {mods} | Estimation du gain de PP : {pp_text} | "
            f"Durée : {_duration(length)} | {stars_text} | {_stats(chart)} | Rankup cible {target_text}"
        )
    return (
        f"I found this beatmap that you probably haven't played, based on a {pp_text} score ! "
        f"↪ {link} ({version}) {mods} | Estimate of PP gain: {pp_text} | "
        f"Duration: {_duration(length)} | {stars_text} | {_stats(chart)} | Target rankup {target_text}"
    )


def not_found_message(locale: str | None) -> str:
    if _is_french(locale):
        return "Je suis désolé mais je n'ai pas trouvé de beatmap avec ces critères."
    return "I'm sorry but I couldn't find a beatmap with these criteria."


def internal_error_message(locale: str | None, request_id: str) -> str:
    if _is_french(locale):
        return (
            "Quelque chose s'est mal passé. Si cela se reproduit, merci de contacter "
            f"un administrateur avec ce code : {request_id}"
        )
    return (
        "Something went wrong. If this happens again, please contact an "
        f"administrator with this code: {request_id}"
    )


def timeout_message(locale: str | None, request_id: str) -> str:
    if _is_french(locale):
        return f"La recherche a pris trop de temps, réessaie plus tard (code : {request_id})."
    return f"The search took too long, please try again later (code: {request_id})."
