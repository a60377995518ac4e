"""
HTML responses emitted by the access gateway.
"""

from html import escape
from typing import Optional

from fastapi.responses import HTMLResponse, Response

CHALLENGE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

REDIRECT_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
}

CONTENT_SECURITY_POLICY = (
    "default-src 'none'; style-src 'unsafe-inline'; "
    "script-src 'unsafe-inline'; connect-src 'self'; form-action 'none';"
)

_STYLE = """
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
  body { background: #0a0e1a; color: #e0e7ff; font-family: system-ui, sans-serif;
         min-height: 100vh; display: flex; align-items: center; justify-content: center; padding: 1rem; }
  .card { background: #111827; border-radius: 16px; padding: 2rem; width: 100%; max-width: 420px; }
  h1 { font-size: 1.4rem; margin-bottom: .75rem; text-align: center; }
  p { color: #6b7f99; font-size: .9rem; line-height: 1.6; margin-bottom: 1.25rem; text-align: center; }
  label { display: block; font-size: .82rem; margin-bottom: .4rem; }
  input { width: 100%; padding: .7rem; margin-bottom: 1rem; border-radius: 8px;
          border: 1px solid #1f2a44; background: #0c1021; color: #e0e7ff; }
  button { width: 100%; padding: .8rem; border: none; border-radius: 8px;
           background: #2563eb; color: #e0e7ff; font-weight: 700; cursor: pointer; }
  button:disabled { opacity: .6; }
  .msg { margin-top: 1rem; font-size: .85rem; min-height: 1.2em; }
  .msg.error { color: #fca5a5; }
  .msg.success { color: #93bbfd; }
  .contact { margin-top: 1.25rem; font-size: .8rem; text-align: center; }
  a { color: #60a5fa; }
"""

_LOGIN_SCRIPT = """
(function () {
  'use strict';
  var RESOURCE_ID = %(resource_id)d;
  var form = document.getElementById('form');
  var btn = document.getElementById('submitBtn');
  var msg = document.getElementById('msg');
  function show(text, kind) { msg.textContent = text; msg.className = 'msg ' + kind; }
  form.addEventListener('submit', function (e) {
    e.preventDefault();
    var identity = document.getElementById('identity').value.trim().toLowerCase();
    var secret = document.getElementById('secret').value;
    if (!/^[^\\s@]+@[^\\s@]+\\.[^\\s@]+$/.test(identity)) { show('Please enter a valid email address.', 'error'); return; }
    if (!secret) { show('Password is required.', 'error'); return; }
    btn.disabled = true;
    fetch('/auth/login', {
      method: 'POST',
      headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify({ identity: identity, secret: secret, resourceId: RESOURCE_ID })
    }).then(function (r) {
      return r.json().then(function (d) { return { status: r.status, data: d }; });
    }).then(function (res) {
      if (res.status === 200 && res.data.status === 'success') {
        show('Access granted! Redirecting...', 'success');
        window.location.replace(res.data.redirect);
      } else {
        show(res.data.message || 'Invalid credentials.', 'error');
        btn.disabled = false;
      }
    }).catch(function () {
      show('Connection error. Please try again.', 'error');
      btn.disabled = false;
    });
  });
})();
"""


def _contact_link(contact_url: Optional[str], text: str) -> str:
    if not contact_url:
        return ""
    return f'<a href="{escape(contact_url)}" target="_blank" rel="noopener noreferrer">{escape(text)}</a>'


def challenge_page(resource_id: int, contact_url: Optional[str] = None) -> Response:
    """Sign-in form for a protected resource (200)."""
    contact = _contact_link(contact_url, "Contact us")
    contact_block = ""
    if contact:
        contact_block = f'<div class="contact">No access yet? {contact} to purchase.</div>'
    script = _LOGIN_SCRIPT % {"resource_id": int(resource_id)}
    html = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="robots" content="noindex, nofollow">
  <meta http-equiv="Content-Security-Policy" content="{CONTENT_SECURITY_POLICY}">
  <title>Course Access - Sign In</title>
  <style>{_STYLE}</style>
</head>
<body>
  <div class="card">
    <h1>Course Access</h1>
    <p>Enter your enrolled email and password to access the course.</p>
    <form id="form" novalidate>
      <label for="identity">Email Address</label>
      <input type="email" id="identity" autocomplete="email" maxlength="254" required>
      <label for="secret">Password</label>
      <input type="password" id="secret" autocomplete="current-password" maxlength="128" required>
      <button type="submit" id="submitBtn">Access My Course</button>
      <div id="msg" class="msg" role="alert" aria-live="polite"></div>
    </form>
    {contact_block}
  </div>
  <script>{script}</script>
</body>
</html>"""
    return HTMLResponse(html, status_code=200, headers=CHALLENGE_HEADERS)


def error_page(title: str, message: str, contact_url: Optional[str] = None, status_code: int = 503) -> Response:
    """Terminal error page with a human-contact affordance."""
    html = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="robots" content="noindex, nofollow">
  <title>{escape(title)}</title>
  <style>{_STYLE}</style>
</head>
<body>
  <div class="card">
    <h1>{escape(title)}</h1>
    <p>{escape(message)}</p>
    <div class="contact">{_contact_link(contact_url, "Contact support")}</div>
  </div>
</body>
</html>"""
    return HTMLResponse(html, status_code=status_code, headers={"Cache-Control": "no-store"})


def redirect(location: str) -> Response:
    """One-time redirect to the resolved resource; never cached."""
    headers = dict(REDIRECT_HEADERS)
    headers["Location"] = location
    return Response(status_code=302, headers=headers)
