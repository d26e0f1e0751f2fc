"""HTML rendering of session presentation states."""

from collections.abc import Callable
from html import escape

from art_publisher.api.models import SessionSnapshot
from art_publisher.services.session import PresentationState


def render(state: PresentationState, snapshot: SessionSnapshot) -> str:
    """Render the markup fragment for a presentation state."""
    return _VIEWS[state](snapshot)


def render_page(state: PresentationState, snapshot: SessionSnapshot) -> str:
    """Render a full HTML document around the state fragment."""
    return _PAGE.format(body=render(state, snapshot), script=_SCRIPT)


def _empty(_snapshot: SessionSnapshot) -> str:
    return (
        "<section id='empty-state'><h1>Nothing to upload</h1>"
        "<p>Open this page from a generation run to publish its images.</p>"
        "</section>"
    )


def _input_error(snapshot: SessionSnapshot) -> str:
    detail = escape(snapshot.input_error or "The launch parameters are invalid.")
    return (
        "<section id='input-error'><h1>Something is wrong with this link</h1>"
        f"<p>{detail}</p></section>"
    )


def _sign_in(snapshot: SessionSnapshot) -> str:
    notice = ""
    if snapshot.identity_error:
        notice = f"<p class='error'>{escape(snapshot.identity_error)}</p>"
    return (
        "<section id='sign-in'><h1>Sign up or sign in</h1>"
        f"{notice}"
        "<form id='sign-up-in-form' onsubmit='return signIn(event)'>"
        "<label for='email'>Email</label> "
        "<input id='email' name='email' type='email' required/> "
        "<button type='submit'>Continue</button></form></section>"
    )


def _verifying(snapshot: SessionSnapshot) -> str:
    email = escape(snapshot.email or "")
    return (
        "<section id='verification-required'><h1>Verify your email address</h1>"
        "<p>Click the link in the email we sent to "
        f"<span data-email-slot>{email}</span>"
        " to sign in.</p>"
        "<button id='cancel-registration' onclick='post(\"/session/cancel\")'>"
        "Cancel</button></section>"
    )


def _registering(snapshot: SessionSnapshot) -> str:
    email = escape(snapshot.email or "")
    return (
        "<section id='registering'><h1>Finishing sign-in</h1>"
        f"<p>Registering <span data-email-slot>{email}</span>.</p></section>"
    )


def _cancelled(_snapshot: SessionSnapshot) -> str:
    return (
        "<section id='cancelled'><h1>Sign-in cancelled</h1>"
        "<button onclick='window.location.reload()'>Start over</button></section>"
    )


def _confirm_upload(snapshot: SessionSnapshot) -> str:
    email = escape(snapshot.email or "")
    notice = ""
    if snapshot.registration_error:
        notice = (
            "<p class='warning'>Registration reported an error: "
            f"{escape(snapshot.registration_error)}</p>"
        )
    return (
        "<section id='upload-confirmation'><h1>Welcome "
        f"<span data-email-slot>{email}</span></h1>{notice}"
        f"<div id='upload-confirmation-gallery'>{_gallery(snapshot)}</div>"
        "<button id='upload-confirm-button' onclick='post(\"/session/upload\")'>"
        "Upload</button> "
        "<button id='sign-out' onclick='post(\"/session/sign-out\")'>Sign out</button>"
        "</section>"
    )


def _uploading(snapshot: SessionSnapshot) -> str:
    percent = snapshot.progress_percent
    return (
        "<section id='upload-started'><h1>Uploading</h1>"
        f"<progress id='upload-progress' max='100' value='{percent}'>{percent}%"
        "</progress></section>"
    )


def _uploaded(snapshot: SessionSnapshot) -> str:
    url = escape(snapshot.share_url or "")
    return (
        "<section id='upload-complete'><h1>Your images are published</h1>"
        f"<a id='upload-link' href='{url}'>{url}</a> "
        f"<button onclick='navigator.clipboard.writeText(\"{url}\")'>Copy link</button>"
        "</section>"
    )


def _upload_failed(snapshot: SessionSnapshot) -> str:
    detail = escape(snapshot.upload_error or "Unknown error")
    return (
        "<section id='upload-failed'><h1>Upload failed</h1>"
        f"<p class='error'>{detail}</p></section>"
    )


def _signed_out(_snapshot: SessionSnapshot) -> str:
    return (
        "<section id='signed-out'><h1>Signed out</h1>"
        "<button onclick='window.location.reload()'>Start over</button></section>"
    )


def _gallery(snapshot: SessionSnapshot) -> str:
    return "".join(
        f"<img src='{escape(url)}' height='268' alt='Generated Artwork'/>"
        for url in snapshot.image_urls
    )


_VIEWS: dict[PresentationState, Callable[[SessionSnapshot], str]] = {
    PresentationState.EMPTY: _empty,
    PresentationState.INPUT_ERROR: _input_error,
    PresentationState.SIGN_IN: _sign_in,
    PresentationState.VERIFYING: _verifying,
    PresentationState.REGISTERING: _registering,
    PresentationState.CANCELLED: _cancelled,
    PresentationState.CONFIRM_UPLOAD: _confirm_upload,
    PresentationState.UPLOADING: _uploading,
    PresentationState.UPLOADED: _uploaded,
    PresentationState.UPLOAD_FAILED: _upload_failed,
    PresentationState.SIGNED_OUT: _signed_out,
}

_SCRIPT = """
async function refresh() {
  const response = await fetch('/session/view');
  document.getElementById('app').innerHTML = await response.text();
}
async function post(path, body) {
  await fetch(path, {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify(body || {}),
  });
  refresh();
}
function signIn(event) {
  event.preventDefault();
  post('/session/sign-in', {email: document.getElementById('email').value});
  return false;
}
setInterval(refresh, 1000);
"""

_PAGE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Publish your artwork</title>
    <style>
      body {{ font-family: ui-sans-serif, system-ui, sans-serif; margin: 2rem; }}
      .error {{ color: #b00020; }}
      .warning {{ color: #8a6d00; }}
      img {{ padding: 12px; }}
    </style>
  </head>
  <body>
    <div id="app">{body}</div>
    <script>{script}</script>
  </body>
</html>
"""
