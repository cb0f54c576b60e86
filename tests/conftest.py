"""
Bundle Repair - Test Configuration and Fixtures
"""
import os
import sys
from pathlib import Path

import pytest

# Set testing environment before any package import reads settings
os.environ['ENVIRONMENT'] = 'testing'
os.environ['LOG_FILE'] = ''
os.environ['LOG_LEVEL'] = 'DEBUG'

# Add repository root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from bundle_repair.services.bundle_extraction.orchestrator import BundleExtractor


COMPLETE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Counter</title>
</head>
<body>
    <button id="increment">+1</button>
    <span id="count">0</span>
</body>
</html>"""

COMPLETE_CSS = """body {
    font-family: sans-serif;
    margin: 2rem;
}
#count { font-weight: bold; }"""

COMPLETE_JS = """let count = 0;
document.getElementById('increment').addEventListener('click', () => {
    count += 1;
    document.getElementById('count').textContent = String(count);
});"""


@pytest.fixture
def extractor() -> BundleExtractor:
    """Fresh extractor with the built-in templates"""
    return BundleExtractor()


@pytest.fixture
def complete_files() -> dict:
    """A well-formed bundle that needs no repair"""
    return {
        "index.html": COMPLETE_HTML,
        "styles.css": COMPLETE_CSS,
        "script.js": COMPLETE_JS,
    }


@pytest.fixture
def well_formed_response(complete_files) -> str:
    """Model response holding a valid JSON bundle inside a fence"""
    import json

    document = json.dumps({
        "files": complete_files,
        "description": "Click counter",
        "instructions": "Open index.html and press +1",
        "framework": "Vanilla JavaScript",
        "language": "JavaScript",
        "styling": "CSS",
        "usedModel": "model-from-text",
    }, indent=2)
    return f"Here is your app:\n\n```json\n{document}\n```\n\nEnjoy!"
