"""
Presentation theme and HTML pages for the login flow. All interpolated values are escaped.
"""
import html
from dataclasses import dataclass

from auth_worker import config


def e(s: str | None) -> str:
    return html.escape(s or "")


@dataclass(frozen=True)
class Theme:
    title: str = "myAuth"
    primary: str = "#0051c3"
    favicon: str = ""
    logo_dark: str = ""
    logo_light: str = ""

    @classmethod
    def from_config(cls) -> "Theme":
        return cls(
            title=config.THEME_TITLE,
            primary=config.THEME_PRIMARY,
            favicon=config.THEME_FAVICON,
            logo_dark=config.THEME_LOGO_DARK,
            logo_light=config.THEME_LOGO_LIGHT,
        )


def render_page(theme: Theme, heading: str, content: str) -> str:
    """Wrap already-escaped content in the themed page layout."""
    favicon = f'<link rel="icon" href="{e(theme.favicon)}"/>' if theme.favicon else ""
    logo = ""
    if theme.logo_light or theme.logo_dark:
        logo = f"""<picture>
    <source srcset="{e(theme.logo_dark or theme.logo_light)}" media="(prefers-color-scheme: dark)"/>
    <img class="logo" src="{e(theme.logo_light or theme.logo_dark)}" alt="{e(theme.title)}"/>
  </picture>"""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{e(heading)} - {e(theme.title)}</title>
  {favicon}
  <style>
    body {{ font-family: system-ui, sans-serif; max-width: 24rem; margin: 3rem auto; }}
    .logo {{ max-height: 3rem; }}
    button, .button {{ background: {e(theme.primary)}; color: #fff; border: 0; padding: 0.5rem 1rem;
      border-radius: 4px; text-decoration: none; display: inline-block; }}
    input {{ width: 100%; padding: 0.4rem; margin: 0.3rem 0 0.8rem; box-sizing: border-box; }}
    .error {{ color: #c00; }}
  </style>
</head>
<body>
  {logo}
  <h1>{e(heading)}</h1>
  {content}
</body>
</html>"""


def email_page(theme: Theme, flow: str, error: str | None = None) -> str:
    err = f'<p class="error">{e(error)}</p>' if error else ""
    return render_page(
        theme,
        "Sign in",
        f"""{err}
  <form method="post" action="/authorize/email">
    <input type="hidden" name="flow" value="{e(flow)}"/>
    <label>Email <input type="email" name="email" autocomplete="email" required autofocus/></label>
    <button type="submit">Continue</button>
  </form>""",
    )


def code_page(theme: Theme, flow: str, email: str, error: str | None = None) -> str:
    err = f'<p class="error">{e(error)}</p>' if error else ""
    return render_page(
        theme,
        "Enter code",
        f"""{err}
  <p>We sent a one-time code to <strong>{e(email)}</strong>.</p>
  <form method="post" action="/authorize/code">
    <input type="hidden" name="flow" value="{e(flow)}"/>
    <label>Code (check Worker logs) <input type="text" name="code" inputmode="numeric"
      autocomplete="one-time-code" required autofocus/></label>
    <button type="submit">Verify</button>
  </form>""",
    )


def landing_page(theme: Theme, authorize_url: str) -> str:
    return render_page(
        theme,
        "Sign in",
        f"""<p>Sign in with your email address. We will send you a one-time code;
  enter it on the next page to continue. No password needed.</p>
  <p><a class="button" href="{e(authorize_url)}">Continue to sign in</a></p>""",
    )
