"""Community Archive Viewer Web Application.

Flask-based web application for uploading Twitter archive exports and
browsing the stored accounts and tweets.
"""

import logging
import os
import secrets
import warnings
from datetime import datetime
from typing import List, Optional

from flask import (
    Flask,
    flash,
    jsonify,
    redirect,
    render_template_string,
    request,
    url_for,
)
from sqlalchemy.exc import SQLAlchemyError

from archive_viewer import config
from archive_viewer.database import EXTENSION_KEY, Database, get_database
from archive_viewer.exceptions import ArchiveError, SchemaValidationError
from archive_viewer.ingest import (
    PROGRESS_LABELS,
    PROGRESS_PERCENT,
    InputFile,
    build_archive,
    extract_bundle,
)
from archive_viewer.queries import get_first_tweets, get_top_tweets, get_user_data
from archive_viewer.schema import REQUIRED_FILES
from archive_viewer.store import store_archive

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Secret key configuration - in production, always set SECRET_KEY environment variable
# to a consistent value to preserve flash messages across restarts and workers
_secret_key = os.environ.get("SECRET_KEY")
if not _secret_key:
    warnings.warn(
        "SECRET_KEY not set. Using a runtime-only key; "
        "set SECRET_KEY for multi-worker deployments.",
        RuntimeWarning,
    )
    _secret_key = secrets.token_hex(32)

app.secret_key = _secret_key

app.config["MAX_CONTENT_LENGTH"] = config.MAX_CONTENT_LENGTH


def configure_database(database_url: str, echo: bool = False) -> Database:
    """Attach the archive store at ``database_url`` to the app."""
    previous = app.extensions.get(EXTENSION_KEY)
    if previous is not None:
        previous.close()
    db = Database(database_url, echo=echo)
    app.extensions[EXTENSION_KEY] = db
    return db


configure_database(config.DATABASE_URL, echo=config.DATABASE_ECHO)


def input_files_from_request() -> List[InputFile]:
    """Turn the multipart ``files`` field into an ingest selection.

    Directory uploads send each file's path relative to the selected
    directory as its filename; zip uploads send a bare filename.
    """
    selection = []
    for f in request.files.getlist("files"):
        if not f or not f.filename:
            continue
        filename = f.filename.replace("\\", "/")
        selection.append(
            InputFile(
                name=filename.rsplit("/", 1)[-1],
                content_type=f.mimetype or "",
                relative_path=filename if "/" in filename else "",
                data=f.read(),
            )
        )
    return selection


# HTML Templates
BASE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }} - Community Archive</title>
    <style>
        * {
            box-sizing: border-box;
        }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, sans-serif;
            margin: 0;
            padding: 0;
            background: #f0f2f5;
            min-height: 100vh;
        }
        .container {
            max-width: 900px;
            margin: 0 auto;
            padding: 20px;
        }
        header, .card {
            background: #fff;
            padding: 20px;
            border-radius: 12px;
            margin-bottom: 20px;
            box-shadow: 0 4px 6px rgba(0,0,0,0.1);
        }
        .flash-messages {
            list-style: none;
            padding: 0;
        }
        .flash-messages li {
            padding: 12px 16px;
            border-radius: 8px;
            margin-bottom: 10px;
        }
        .flash-messages .error { background: #fdecea; color: #a12622; }
        .flash-messages .success { background: #e8f5e9; color: #1b5e20; }
        .flash-messages .info { background: #e3f2fd; color: #0d47a1; }
        .progress-container {
            display: none;
            margin-top: 15px;
        }
        .progress-bar {
            width: 200px;
            height: 20px;
            border: 1px solid #ccc;
            border-radius: 10px;
            overflow: hidden;
        }
        .progress-bar-fill {
            height: 100%;
            width: 0;
            background-color: #4CAF50;
            transition: width 0.5s ease-in-out;
        }
        .tweet {
            border-bottom: 1px solid #eee;
            padding: 12px 0;
            display: flex;
            gap: 12px;
        }
        .tweet img, .avatar {
            width: 48px;
            height: 48px;
            border-radius: 50%;
        }
        .tweet .meta {
            color: #666;
            font-size: 0.85em;
        }
    </style>
</head>
<body>
    <div class="container">
        <header>
            <h1>{{ header_title | default('Community Archive') }}</h1>
            {% if header_description %}
            <p>{{ header_description }}</p>
            {% endif %}
        </header>
        {% with messages = get_flashed_messages(with_categories=true) %}
            {% if messages %}
                <ul class="flash-messages">
                {% for category, message in messages %}
                    <li class="{{ category }}">{{ message }}</li>
                {% endfor %}
                </ul>
            {% endif %}
        {% endwith %}
        {{ content | safe }}
    </div>
    {{ scripts | safe }}
</body>
</html>
"""

UPLOAD_CONTENT = """
<div class="card">
    <h2>Upload your archive</h2>
    <form id="upload-form" action="{{ url_for('upload') }}" method="post" enctype="multipart/form-data">
        <p><label>Archive zip: <input type="file" id="zip-input" accept=".js,.zip"></label></p>
        <p><label>Or the unzipped folder: <input type="file" id="dir-input" webkitdirectory directory multiple></label></p>
        <div class="progress-container" id="progress-container">
            <p id="progress-text">{{ labels['uploading'] }}</p>
            <div class="progress-bar"><div class="progress-bar-fill" id="progress-fill"></div></div>
        </div>
    </form>
</div>

<div class="card">
    <h2>Which files are used</h2>
    <ul>
    {% for f in required_files %}
        <li><code>{{ f.path }}</code>{% if f.aliases %} (or <code>{{ f.aliases | join(', ') }}</code>){% endif %}</li>
    {% endfor %}
    </ul>
</div>
"""

UPLOAD_SCRIPTS = """
<script>
document.addEventListener('DOMContentLoaded', function() {
    const form = document.getElementById('upload-form');
    const zipInput = document.getElementById('zip-input');
    const dirInput = document.getElementById('dir-input');
    const progressContainer = document.getElementById('progress-container');
    const progressFill = document.getElementById('progress-fill');
    const progressText = document.getElementById('progress-text');
    const requiredPaths = {{ required_paths | tojson }};
    const labels = {{ labels | tojson }};
    const percent = {{ percent | tojson }};

    function setState(state) {
        if (state === 'idle') {
            progressContainer.style.display = 'none';
            zipInput.disabled = false;
            dirInput.disabled = false;
            return;
        }
        progressContainer.style.display = 'block';
        zipInput.disabled = true;
        dirInput.disabled = true;
        progressText.textContent = labels[state];
        progressFill.style.width = percent[state] + '%';
    }

    function send(formData) {
        setState('uploading');
        const xhr = new XMLHttpRequest();
        xhr.upload.addEventListener('load', () => setState('processing'));
        xhr.onload = function() {
            window.location.href = xhr.responseURL;
        };
        xhr.onerror = function() {
            setState('idle');
            alert('An error occurred while uploading archive');
        };
        xhr.open('POST', form.action);
        xhr.send(formData);
    }

    zipInput.addEventListener('change', (e) => {
        const files = e.target.files;
        if (!files || files.length === 0) return;
        const formData = new FormData();
        formData.append('files', files[0]);
        send(formData);
    });

    dirInput.addEventListener('change', (e) => {
        const files = Array.from(e.target.files || []);
        if (files.length === 0) return;
        const root = files[0].webkitRelativePath.split('/')[0];
        const wanted = new Set(requiredPaths.map(p => root + '/' + p));
        const formData = new FormData();
        files.filter(f => wanted.has(f.webkitRelativePath))
             .forEach(f => formData.append('files', f, f.webkitRelativePath));
        send(formData);
    });
});
</script>
"""

USER_CONTENT = """
<div class="card">
    {% if user.account.avatar_media_url %}
    <img class="avatar" src="{{ user.account.avatar_media_url }}" alt="">
    {% endif %}
    <h2>{{ user.account.account_display_name }} <small>@{{ user.account.username }}</small></h2>
    {% if user.account.bio %}<p>{{ user.account.bio }}</p>{% endif %}
    <p class="meta">
        {% if user.account.location %}{{ user.account.location }} · {% endif %}
        {% if user.account.website %}<a href="{{ user.account.website }}">{{ user.account.website }}</a> · {% endif %}
        {{ user.tweet_count | format_number }} tweets
        {% if user.account.archive_at %} · archived {{ user.account.archive_at.strftime('%Y-%m-%d') }}{% endif %}
    </p>
</div>

{% for heading, tweets in [('Top tweets', top_tweets), ('First tweets', first_tweets)] %}
<div class="card">
    <h2>{{ heading }}</h2>
    {% for tweet in tweets %}
    <div class="tweet">
        {% if tweet.profile_image_url %}<img src="{{ tweet.profile_image_url }}" alt="">{% endif %}
        <div>
            <div class="meta">
                {{ tweet.display_name }} @{{ tweet.username }}
                {% if tweet.created_at %} · {{ tweet.created_at.strftime('%Y-%m-%d %H:%M') }}{% endif %}
                {% if tweet.in_reply_to_screen_name %} · replying to @{{ tweet.in_reply_to_screen_name }}{% endif %}
            </div>
            <p>{{ tweet.text }}</p>
            <div class="meta">
                ♻ {{ tweet.retweet_count | format_number }} · ♥ {{ tweet.favorite_count | format_number }}
            </div>
        </div>
    </div>
    {% else %}
    <p>No tweets.</p>
    {% endfor %}
</div>
{% endfor %}
"""


def format_number(value):
    """Format a number with thousands separator."""
    if value is None:
        return "N/A"
    try:
        return f"{int(value):,}"
    except (ValueError, TypeError):
        return str(value)


app.jinja_env.filters["format_number"] = format_number


def _limit_arg(default: int) -> int:
    return max(1, min(1000, request.args.get("limit", default, type=int)))


@app.route("/")
def index():
    """Render the upload page."""
    labels = {state.value: label for state, label in PROGRESS_LABELS.items()}
    percent = {state.value: value for state, value in PROGRESS_PERCENT.items()}
    return render_template_string(
        BASE_TEMPLATE,
        title="Upload",
        header_title="Community Archive",
        header_description="Upload your Twitter archive (.zip or the unzipped folder) to add it to the archive",
        content=render_template_string(
            UPLOAD_CONTENT,
            labels=labels,
            required_files=REQUIRED_FILES,
        ),
        scripts=render_template_string(
            UPLOAD_SCRIPTS,
            labels=labels,
            percent=percent,
            required_paths=[c for f in REQUIRED_FILES for c in f.candidates],
        ),
    )


@app.route("/upload", methods=["POST"])
def upload():
    """Handle an archive upload from the upload page."""
    selection = input_files_from_request()
    if not selection:
        flash("No files selected", "error")
        return redirect(url_for("index"))

    try:
        archive = build_archive(extract_bundle(selection))
        with get_database().session_scope() as session:
            stored = store_archive(session, archive)
    except ArchiveError as e:
        logger.error("Error processing archive: %s", e)
        flash(str(e), "error")
        return redirect(url_for("index"))
    except SQLAlchemyError as e:
        logger.exception("Failed to store archive")
        flash(f"Error storing archive: {e}", "error")
        return redirect(url_for("index"))

    flash(
        f"Successfully uploaded {stored.tweets:,} tweets for @{stored.username}",
        "success",
    )
    return redirect(url_for("user_page", account_id=stored.account_id))


@app.route("/api/upload-archive", methods=["POST"])
def api_upload_archive():
    """Store a merged archive document posted by the ingestor."""
    archive = request.get_json(silent=True)
    if archive is None:
        return jsonify({"message": "Request body must be a JSON archive"}), 400

    try:
        with get_database().session_scope() as session:
            stored = store_archive(session, archive)
    except SchemaValidationError as e:
        return jsonify({"message": str(e)}), 400
    except SQLAlchemyError:
        logger.exception("Failed to store archive")
        return jsonify({"message": "Failed to store archive"}), 500

    return jsonify({
        "message": f"Archive for @{stored.username} uploaded: {stored.tweets:,} tweets",
        "account_id": stored.account_id,
        "tweets": stored.tweets,
        "followers": stored.followers,
        "following": stored.following,
    })


@app.route("/api/user/<account_id>")
def api_user(account_id):
    """API endpoint for an account's profile, first tweets and top tweets."""
    user = get_user_data(account_id)
    if user is None:
        return jsonify({"user": None, "firstTweets": [], "topTweets": []}), 404

    return jsonify({
        "user": user.to_dict(),
        "firstTweets": [t.to_dict() for t in get_first_tweets(account_id, _limit_arg(config.DEFAULT_FIRST_TWEETS_LIMIT))],
        "topTweets": [t.to_dict() for t in get_top_tweets(account_id, _limit_arg(config.DEFAULT_TOP_TWEETS_LIMIT))],
    })


@app.route("/user/<account_id>")
def user_page(account_id):
    """Render an account's archive."""
    user = get_user_data(account_id)
    if user is None:
        flash("Account not found. Upload its archive first.", "info")
        return redirect(url_for("index"))

    return render_template_string(
        BASE_TEMPLATE,
        title=f"@{user.account.username}",
        header_title=f"@{user.account.username}",
        content=render_template_string(
            USER_CONTENT,
            user=user,
            first_tweets=get_first_tweets(account_id),
            top_tweets=get_top_tweets(account_id),
        ),
        scripts="",
    )


@app.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "timestamp": datetime.now().isoformat()})


def create_app(database_url: Optional[str] = None):
    """Application factory for WSGI servers."""
    if database_url:
        configure_database(database_url)
    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("DEBUG", "false").lower() == "true"
    app.run(host="0.0.0.0", port=port, debug=debug)
