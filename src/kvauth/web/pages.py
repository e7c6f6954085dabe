"""HTML pages rendered from Liquid templates.

Every interpolated value goes through the ``escape`` filter except the
already-rendered ``content`` block of the layout.
"""

from datetime import datetime

from liquid import Environment

from kvauth.core.modules.session.models import Session
from kvauth.core.modules.user.models import UserView

_env = Environment()

LAYOUT = _env.from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{ title | escape }}</title>
  <style>
    body { font-family: system-ui, sans-serif; max-width: 640px; margin: 40px auto; padding: 0 16px; color: #1f2937; }
    form { display: flex; flex-direction: column; gap: 12px; }
    input { padding: 10px; border: 1px solid #d1d5db; border-radius: 6px; }
    .btn-primary { background: #2563eb; color: #fff; padding: 10px 20px; border: 0; border-radius: 6px; text-decoration: none; }
    .notice { background: #ecfdf5; border: 1px solid #a7f3d0; padding: 12px; border-radius: 6px; }
    .error-page { text-align: center; padding: 40px 0; }
    .error-page h1 { color: #dc2626; }
    .muted { color: #6b7280; }
  </style>
</head>
<body>
<main class="container">
{{ content }}
</main>
</body>
</html>
"""
)

HOME = _env.from_string(
    """<h1>Welcome</h1>
{% if email %}
  <p>Signed in as <strong>{{ email | escape }}</strong>.</p>
  <p><a class="btn-primary" href="/dashboard">Dashboard</a> <a href="/logout">Log out</a></p>
{% else %}
  <p>Create an account or sign in to continue.</p>
  <p><a class="btn-primary" href="/signup">Sign up</a> <a href="/login">Log in</a></p>
{% endif %}
"""
)

AUTH_FORM = _env.from_string(
    """<h1>{{ title | escape }}</h1>
{% if message %}<p class="notice">{{ message | escape }}</p>{% endif %}
<form method="post" action="{{ action | escape }}">
  <input type="email" name="email" placeholder="Email" required autocomplete="email">
  <input type="password" name="password" placeholder="Password" required minlength="8">
  {% if honeypot_field %}<input type="text" name="{{ honeypot_field | escape }}" style="display: none" tabindex="-1" autocomplete="off">{% endif %}
  <button class="btn-primary" type="submit">{{ submit_text | escape }}</button>
</form>
{% if alternate_href %}<p><a href="{{ alternate_href | escape }}">{{ alternate_text | escape }}</a></p>{% endif %}
"""
)

DASHBOARD = _env.from_string(
    """<h1>Dashboard</h1>
<p>Signed in as <strong>{{ email | escape }}</strong>{% if plan %} on the {{ plan | escape }} plan{% endif %}.</p>
<p class="muted">Session started {{ created_at | escape }}.</p>
<p><a href="/logout">Log out</a></p>
"""
)

ERROR = _env.from_string(
    """<div class="error-page">
  <h1>{{ heading | escape }}</h1>
  <p>{{ message | escape }}</p>
  <p class="muted">{{ suggestion | escape }}</p>
  {% if extra %}<p class="muted">{{ extra | escape }}</p>{% endif %}
  <p>
    <a class="btn-primary" href="/">Back to Home</a>
    {% if show_login %}<a class="btn-primary" href="/login">Log in</a>{% endif %}
  </p>
  <p class="muted">Error Code: {{ status_code }}</p>
</div>
"""
)

# status -> (title, heading, message, suggestion, show_login)
ERROR_PAGES: dict[int, tuple[str, str, str, str, bool]] = {
    400: (
        "400 - Bad Request",
        "Bad Request",
        "The request could not be understood by the server.",
        "Please check your request and try again.",
        False,
    ),
    401: (
        "401 - Unauthorized",
        "Access Denied",
        "You need to be authenticated to access this resource.",
        "Please log in and try again.",
        True,
    ),
    403: (
        "403 - Forbidden",
        "Access Forbidden",
        "You don't have permission to access this resource.",
        "Contact support if you believe this is an error.",
        False,
    ),
    404: (
        "404 - Not Found",
        "Page Not Found",
        "The page you're looking for doesn't exist.",
        "Check the URL or return to the homepage.",
        False,
    ),
    429: (
        "429 - Too Many Requests",
        "Rate Limited",
        "You've made too many requests in a short time.",
        "Please wait a moment before trying again.",
        False,
    ),
    500: (
        "500 - Internal Server Error",
        "Something Went Wrong",
        "An unexpected error occurred on our servers.",
        "Please try again later.",
        False,
    ),
    503: (
        "503 - Service Unavailable",
        "Service Temporarily Unavailable",
        "Our service is temporarily unavailable due to high load or maintenance.",
        "Please try again in a few minutes. This issue usually resolves automatically.",
        False,
    ),
}


def render_page(title: str, content: str) -> str:
    return LAYOUT.render(title=title, content=content)


def render_home(session: Session | None) -> str:
    return render_page("Home", HOME.render(email=session.email if session else None))


def render_auth_form(
    title: str,
    action: str,
    submit_text: str,
    honeypot_field: str | None = None,
    message: str | None = None,
    alternate_href: str | None = None,
    alternate_text: str | None = None,
) -> str:
    content = AUTH_FORM.render(
        title=title,
        action=action,
        submit_text=submit_text,
        honeypot_field=honeypot_field,
        message=message,
        alternate_href=alternate_href,
        alternate_text=alternate_text,
    )
    return render_page(title, content)


def render_dashboard(session: Session, user: UserView | None) -> str:
    content = DASHBOARD.render(
        email=session.email,
        plan=user.plan if user else None,
        created_at=_format_time(session.created_at),
    )
    return render_page("Dashboard", content)


def render_error(status_code: int, message: str | None = None, extra: str | None = None) -> str:
    """Themed error page. ``message`` replaces the default text for the status."""
    title, heading, default_message, suggestion, show_login = ERROR_PAGES.get(status_code, ERROR_PAGES[500])
    content = ERROR.render(
        heading=heading,
        message=message or default_message,
        suggestion=suggestion,
        extra=extra,
        show_login=show_login,
        status_code=status_code,
    )
    return render_page(title, content)


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")
