"""HTML bodies for transactional email."""

from dataclasses import dataclass
from html import escape

APP_NAME = "MyLife OS"

_STYLE = """
      body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 0; background: #f4f4f5; }
      .container { max-width: 560px; margin: 40px auto; background: #ffffff; border-radius: 12px; padding: 40px; }
      h1 { color: #18181b; font-size: 24px; margin-bottom: 16px; }
      p { color: #3f3f46; font-size: 16px; line-height: 1.6; }
      .stat-grid { display: flex; flex-wrap: wrap; gap: 16px; margin-bottom: 24px; }
      .stat-card { flex: 1 1 45%; background: #f4f4f5; border-radius: 8px; padding: 16px; text-align: center; }
      .stat-value { font-size: 28px; font-weight: 700; color: #6366f1; }
      .stat-label { font-size: 13px; color: #71717a; margin-top: 4px; }
      .footer { text-align: center; color: #a1a1aa; font-size: 13px; margin-top: 32px; }
"""


@dataclass
class DigestStats:
    """Counts shown in the daily digest."""

    habits_completed: int = 0
    habits_total: int = 0
    tasks_completed: int = 0
    tasks_total: int = 0
    journal_entries: int = 0
    streak: str = "0"

    def to_dict(self) -> dict[str, int | str]:
        return {
            "habitsCompleted": self.habits_completed,
            "habitsTotal": self.habits_total,
            "tasksCompleted": self.tasks_completed,
            "tasksTotal": self.tasks_total,
            "journalEntries": self.journal_entries,
            "streak": self.streak,
        }


def _page(content: str, year: int) -> str:
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <style>{_STYLE}</style>
  </head>
  <body>
    <div class="container">
{content}
      <div class="footer">
        <p>&copy; {year} {APP_NAME}. All rights reserved.</p>
      </div>
    </div>
  </body>
</html>
"""


def welcome_html(name: str, year: int) -> str:
    return _page(
        f"""      <h1>Welcome, {escape(name)}!</h1>
      <p>Thanks for joining <strong>{APP_NAME}</strong>. We are excited to help you build better habits, track your health, and achieve your goals.</p>
      <p>Here is what you can do to get started:</p>
      <ul>
        <li>Set up your first habit tracker</li>
        <li>Create daily goals</li>
        <li>Start journaling</li>
      </ul>
      <p>If you have any questions, just reply to this email.</p>""",
        year,
    )


def _stat_card(value: str, label: str) -> str:
    return (
        '        <div class="stat-card">\n'
        f'          <div class="stat-value">{escape(value)}</div>\n'
        f'          <div class="stat-label">{label}</div>\n'
        "        </div>"
    )


def daily_digest_html(stats: DigestStats, year: int) -> str:
    cards = "\n".join(
        [
            _stat_card(f"{stats.habits_completed}/{stats.habits_total}", "Habits Completed"),
            _stat_card(f"{stats.tasks_completed}/{stats.tasks_total}", "Tasks Done"),
            _stat_card(str(stats.journal_entries), "Journal Entries"),
            _stat_card(str(stats.streak), "Day Streak"),
        ]
    )
    return _page(
        f"""      <h1>Your Daily Digest</h1>
      <div class="stat-grid">
{cards}
      </div>
      <p>Keep up the great work! Consistency is the key to lasting change.</p>""",
        year,
    )
