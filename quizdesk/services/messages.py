"""Telegram (HTML parse mode) renderings of session and catalog statistics."""
from datetime import datetime
from html import escape
from typing import Iterable, List, Optional

from quizdesk.core.clock import utcnow
from quizdesk.services.session_engine import SessionSummary
from quizdesk.services.stats import DifficultQuestion, OverallStats

MODE_LABELS = {"test": "Test", "training": "Training"}
TIME_FORMAT = "%Y-%m-%d %H:%M UTC"


def _minutes_between(start: datetime, end: datetime) -> int:
    if (start.tzinfo is None) != (end.tzinfo is None):
        start, end = start.replace(tzinfo=None), end.replace(tzinfo=None)
    return round((end - start).total_seconds() / 60)


def format_session_results(summary: SessionSummary, wrong_question_ids: Optional[Iterable[int]] = None) -> str:
    end = summary.end_time or utcnow()
    wrong_ids: List[int] = list(wrong_question_ids if wrong_question_ids is not None else summary.wrong_question_ids)

    lines = [
        "🎯 <b>Session finished</b>",
        "",
        f"👤 User: <code>{escape(summary.user_uuid[:8])}...</code>",
        f"📋 Mode: {MODE_LABELS.get(summary.mode, escape(summary.mode))}",
        "📊 Results:",
        f"  ✅ Correct: {summary.correct_answers}",
        f"  ❌ Wrong: {summary.wrong_answers}",
        f"  📈 Score: {summary.percentage:.1f}%",
        f"  📝 Answered: {summary.correct_answers + summary.wrong_answers}",
    ]
    if summary.focus_switches:
        lines.append(f"  👀 Focus switches: {summary.focus_switches}")
    if wrong_ids:
        lines += ["", "❗️ <b>Missed questions:</b>"]
        lines += [f"  {i}. Question #{qid}" for i, qid in enumerate(wrong_ids, 1)]
    lines += [
        "",
        f"⏱ Duration: {_minutes_between(summary.start_time, end)} min.",
        f"🕐 Finished: {end.strftime(TIME_FORMAT)}",
    ]
    return "\n".join(lines)


def format_overall_stats(stats: OverallStats) -> str:
    lines = [
        "📊 <b>Overall statistics</b>",
        "",
        f"👥 Users: {stats.total_users}",
        f"🎯 Sessions: {stats.total_sessions}",
        f"📈 Average score: {stats.average_percentage:.2f}%",
    ]
    if stats.top_difficult_questions:
        lines += ["", f"❗️ <b>Top {len(stats.top_difficult_questions)} hardest questions:</b>"]
        lines += [
            f"  {i}. Question #{q.question_id} ({q.error_rate:.1f}% wrong, shown {q.total_shown} times)"
            for i, q in enumerate(stats.top_difficult_questions, 1)
        ]
    return "\n".join(lines)


def format_difficult_questions(questions: List[DifficultQuestion], min_shown: int) -> str:
    if not questions:
        return "📊 <b>Hardest questions</b>\n\nNot enough data yet."

    lines = [f"❗️ <b>Top {len(questions)} hardest questions:</b>", ""]
    for i, q in enumerate(questions, 1):
        lines.append(f"{i}. <b>Question #{q.question_id}</b>")
        lines.append(f"   📊 Wrong: <b>{q.error_rate:.1f}%</b> (shown {q.total_shown} times)")
        lines.append("")
    lines.append(f"💡 <i>Minimum shows: {min_shown}</i>")
    lines.append(f"🕐 Updated: {utcnow().strftime(TIME_FORMAT)}")
    return "\n".join(lines)
