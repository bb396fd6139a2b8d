"""Documents and in-page scripts for rendering the widget.

Each render variant loads a minimal page holding one widget built from
the extracted challenge parameters. Attribute values are HTML-escaped;
``data-start`` falls back to DEFAULT_START_MODE when the challenge
doesn't carry one.
"""

import html
import json

from frcsolve._challenge import DEFAULT_START_MODE, SOLUTION_FIELD, Challenge

WIDGET_CDN_URL = (
    "https://cdn.jsdelivr.net/npm/friendly-challenge@0.9.12/widget.min.js"
)
WIDGET_SELECTOR = ".frc-captcha"
IFRAME_NAME = "captcha-frame"

# The widget keeps placeholder values such as ".UNSTARTED",
# ".UNFINISHED" or ".FETCHING" in its solution input until it is done.
SOLUTION_READY_JS = """() => {
    const inputs = document.querySelectorAll('input[name="%s"]');
    for (const input of inputs) {
        if (input.value && !input.value.startsWith('.')) return true;
    }
    return false;
}""" % SOLUTION_FIELD

READ_SOLUTION_JS = """() => {
    const inputs = document.querySelectorAll('input[name="%s"]');
    for (const input of inputs) {
        if (input.value && !input.value.startsWith('.')) return input.value;
    }
    return '';
}""" % SOLUTION_FIELD

START_WIDGET_JS = """() => {
    const el = document.querySelector('%s');
    if (!el) return false;
    const widget = el.friendlyChallengeWidget || el;
    if (typeof widget.start === 'function') {
        widget.start();
        return true;
    }
    return false;
}""" % WIDGET_SELECTOR

# Builds a widget by hand once the library script is on the page and
# resolves with the solution. Rejects on widget error or timeout.
MANUAL_INSTANTIATION_JS = """(cfg) => new Promise((resolve, reject) => {
    const timer = setTimeout(
        () => reject(new Error('Manual integration timeout')), cfg.timeoutMs);
    const container = document.createElement('div');
    container.className = 'frc-captcha';
    container.setAttribute('data-sitekey', cfg.sitekey);
    document.body.appendChild(container);

    const input = document.createElement('input');
    input.type = 'hidden';
    input.name = cfg.field;
    document.body.appendChild(input);

    const done = (solution) => {
        clearTimeout(timer);
        input.value = solution;
        resolve(solution);
    };
    const lib = window.friendlyChallenge;
    if (lib && typeof lib.WidgetInstance === 'function') {
        try {
            const options = {
                sitekey: cfg.sitekey,
                startMode: 'none',
                doneCallback: done,
                errorCallback: (err) => {
                    clearTimeout(timer);
                    reject(new Error(String(err && err.description || err)));
                },
            };
            if (cfg.puzzleEndpoint) options.puzzleEndpoint = cfg.puzzleEndpoint;
            if (cfg.lang) options.language = cfg.lang;
            const widget = new lib.WidgetInstance(container, options);
            widget.start();
        } catch (err) {
            clearTimeout(timer);
            reject(err);
        }
        return;
    }
    // No constructor exposed: poll for the auto-attached widget instead.
    const poll = () => {
        if (input.value && !input.value.startsWith('.')) {
            done(input.value);
        } else {
            setTimeout(poll, 100);
        }
    };
    setTimeout(poll, 1000);
})"""

# Spoofed navigator properties for anti-detection mode. Runs before
# any page script.
STEALTH_INIT_JS = """
Object.defineProperty(Navigator.prototype, 'webdriver', {
    get: () => false,
    configurable: true,
});
if (!window.chrome) {
    window.chrome = {};
}
if (!window.chrome.runtime) {
    window.chrome.runtime = {
        connect: function() {},
        sendMessage: function() {},
    };
}
Object.defineProperty(Navigator.prototype, 'plugins', {
    get: () => [1, 2, 3, 4, 5],
    configurable: true,
});
Object.defineProperty(Navigator.prototype, 'languages', {
    get: () => ['en-US', 'en'],
    configurable: true,
});
"""


def _attr(name: str, value) -> str:
    return f' {name}="{html.escape(str(value), quote=True)}"'


def widget_page(challenge: Challenge) -> str:
    """Page with the widget script and a pre-configured widget div."""
    attrs = _attr("data-sitekey", challenge.site_key)
    if challenge.puzzle_endpoint:
        attrs += _attr("data-puzzle-endpoint", challenge.puzzle_endpoint)
    if challenge.difficulty:
        attrs += _attr("data-difficulty", challenge.difficulty)
    if challenge.lang:
        attrs += _attr("data-lang", challenge.lang)
    attrs += _attr("data-start", challenge.start_mode or DEFAULT_START_MODE)

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Verification</title>
    <script src="{WIDGET_CDN_URL}"></script>
</head>
<body>
    <form>
        <div class="frc-captcha"{attrs}></div>
        <input type="hidden" name="{SOLUTION_FIELD}" value="">
    </form>
</body>
</html>"""


def iframe_page(challenge: Challenge) -> str:
    """Page embedding widget_page() in a named srcdoc iframe."""
    inner = html.escape(widget_page(challenge), quote=True)
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Verification</title>
</head>
<body>
    <iframe name="{IFRAME_NAME}" srcdoc="{inner}"
            width="100%" height="300" frameborder="0"></iframe>
</body>
</html>"""


def manual_page(challenge: Challenge) -> str:
    """Bare page; the widget is built later by MANUAL_INSTANTIATION_JS."""
    config = {
        "sitekey": challenge.site_key,
        "puzzleEndpoint": challenge.puzzle_endpoint,
        "difficulty": challenge.difficulty,
        "lang": challenge.lang,
        "startMode": challenge.start_mode,
    }
    # "</" can't appear inside an inline script.
    blob = json.dumps(config).replace("</", "<\\/")
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>Verification</title>
</head>
<body>
    <div id="captcha-container"></div>
    <script>window.captchaConfig = {blob};</script>
</body>
</html>"""


def manual_config(challenge: Challenge, timeout_ms: int) -> dict:
    """Argument object for MANUAL_INSTANTIATION_JS."""
    return {
        "sitekey": challenge.site_key,
        "puzzleEndpoint": challenge.puzzle_endpoint,
        "lang": challenge.lang,
        "field": SOLUTION_FIELD,
        "timeoutMs": timeout_ms,
    }
