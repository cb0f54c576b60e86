"""
Safe Defaults and Fallback Templates

Safe defaults are the minimal content substituted for a missing or
unsalvageable file. Fallback templates are complete example applications
returned when no strategy recovers a bundle; they are picked by keyword
match against the request text.

New templates go through `TemplateRegistry.register`, the orchestrator never
needs to change.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bundle_repair.core.config import settings
from bundle_repair.core.logging_config import logger
from bundle_repair.schemas.bundle import FileKind


# =============================================================================
# Safe defaults
# =============================================================================

DEFAULT_STYLESHEET = "/* No styles were provided */"
DEFAULT_SCRIPT = "// No script was provided"


def default_markup(title: str = "Application") -> str:
    """Minimal complete document"""
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{settings.DOCUMENT_LANG}">\n'
        "<head>\n"
        '    <meta charset="UTF-8">\n'
        '    <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"    <title>{title}</title>\n"
        "</head>\n"
        "<body>\n"
        '    <main id="app">\n'
        "        <p>The application content could not be recovered.</p>\n"
        "    </main>\n"
        "</body>\n"
        "</html>"
    )


def safe_default(kind: FileKind) -> str:
    """Minimal safe content for a file kind"""
    if kind is FileKind.MARKUP:
        return default_markup()
    if kind is FileKind.STYLESHEET:
        return DEFAULT_STYLESHEET
    return DEFAULT_SCRIPT


def is_safe_default(kind: FileKind, content: str) -> bool:
    return content.strip() == safe_default(kind).strip()


# =============================================================================
# Fallback templates
# =============================================================================

@dataclass(frozen=True)
class AppTemplate:
    """A complete, self-contained example application"""
    name: str
    keywords: Tuple[str, ...]
    markup: str
    stylesheet: str
    script: str
    description: str
    instructions: str = "Open index.html in a browser to use the application"

    def matches(self, request_text: str) -> bool:
        lowered = request_text.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords)

    def files(self) -> Dict[FileKind, str]:
        return {
            FileKind.MARKUP: self.markup,
            FileKind.STYLESHEET: self.stylesheet,
            FileKind.SCRIPT: self.script,
        }


@dataclass
class TemplateRegistry:
    """Keyword -> template lookup with a fixed default"""
    _templates: List[AppTemplate] = field(default_factory=list)
    _default: Optional[AppTemplate] = None

    def register(self, template: AppTemplate, default: bool = False) -> None:
        self._templates.append(template)
        if default or self._default is None:
            self._default = template
        logger.debug(f"[Templates] Registered '{template.name}'" + (" (default)" if default else ""))

    @property
    def templates(self) -> List[AppTemplate]:
        return list(self._templates)

    @property
    def default(self) -> AppTemplate:
        if self._default is None:
            raise LookupError("Template registry is empty")
        return self._default

    def match(self, request_text: str = "") -> AppTemplate:
        """First template (in registration order) whose keyword appears in the request"""
        if request_text:
            for template in self._templates:
                if template.matches(request_text):
                    return template
        return self.default


def _document(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        f'<html lang="{settings.DOCUMENT_LANG}">\n'
        "<head>\n"
        '    <meta charset="UTF-8">\n'
        '    <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"    <title>{title}</title>\n"
        "</head>\n"
        "<body>\n"
        f"{body}\n"
        "</body>\n"
        "</html>"
    )


CALCULATOR_TEMPLATE = AppTemplate(
    name="Calculator",
    keywords=("calculator", "calc", "電卓", "計算"),
    description="Calculator - a responsive four-function calculator with keyboard-free button input",
    instructions="Open index.html in a browser. Use the buttons to enter numbers and operators, = to calculate, AC to clear.",
    markup=_document("Calculator", """    <div class="calculator">
        <div class="display" id="display">0</div>
        <div class="buttons">
            <button data-action="clear">AC</button>
            <button data-action="delete">DEL</button>
            <button class="operator" data-operator="/">&divide;</button>
            <button class="operator" data-operator="*">&times;</button>
            <button data-digit="7">7</button>
            <button data-digit="8">8</button>
            <button data-digit="9">9</button>
            <button class="operator" data-operator="-">-</button>
            <button data-digit="4">4</button>
            <button data-digit="5">5</button>
            <button data-digit="6">6</button>
            <button class="operator" data-operator="+">+</button>
            <button data-digit="1">1</button>
            <button data-digit="2">2</button>
            <button data-digit="3">3</button>
            <button class="equals" data-action="equals">=</button>
            <button class="zero" data-digit="0">0</button>
            <button data-action="decimal">.</button>
        </div>
    </div>"""),
    stylesheet="""* { margin: 0; padding: 0; box-sizing: border-box; }
body {
    font-family: system-ui, -apple-system, sans-serif;
    background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
    min-height: 100vh;
    display: flex;
    align-items: center;
    justify-content: center;
    padding: 1rem;
}
.calculator {
    background: white;
    border-radius: 1rem;
    box-shadow: 0 0.5rem 1rem rgba(0, 0, 0, 0.1);
    width: 100%;
    max-width: 360px;
    overflow: hidden;
}
.display {
    background: #2196F3;
    color: white;
    padding: 1.5rem;
    text-align: right;
    font-size: 2rem;
    min-height: 6rem;
    word-break: break-all;
}
.buttons {
    display: grid;
    grid-template-columns: repeat(4, 1fr);
    gap: 1px;
    background: rgba(0, 0, 0, 0.1);
}
button {
    border: none;
    background: white;
    font-size: 1.25rem;
    padding: 1.25rem;
    cursor: pointer;
}
button:hover { background: #f5f5f5; }
.operator { background: #e3f2fd; }
.equals { background: #2196F3; color: white; grid-row: span 2; }
.zero { grid-column: span 2; }""",
    script="""const display = document.getElementById('display');
let current = '0';
let previous = null;
let operator = null;
let resetNext = false;

function updateDisplay() {
    display.textContent = current;
}

function compute(a, b, op) {
    switch (op) {
        case '+': return a + b;
        case '-': return a - b;
        case '*': return a * b;
        case '/': return b === 0 ? NaN : a / b;
        default: return b;
    }
}

function inputDigit(digit) {
    if (current === '0' || resetNext) {
        current = digit;
        resetNext = false;
    } else {
        current += digit;
    }
    updateDisplay();
}

function inputDecimal() {
    if (resetNext) {
        current = '0';
        resetNext = false;
    }
    if (!current.includes('.')) {
        current += '.';
    }
    updateDisplay();
}

function inputOperator(op) {
    if (operator !== null && !resetNext) {
        calculate();
    }
    previous = parseFloat(current);
    operator = op;
    resetNext = true;
}

function calculate() {
    if (operator === null || previous === null) {
        return;
    }
    const result = compute(previous, parseFloat(current), operator);
    current = Number.isFinite(result) ? String(parseFloat(result.toFixed(10))) : 'Error';
    previous = null;
    operator = null;
    resetNext = true;
    updateDisplay();
}

function clearAll() {
    current = '0';
    previous = null;
    operator = null;
    resetNext = false;
    updateDisplay();
}

function deleteLast() {
    current = current.length > 1 ? current.slice(0, -1) : '0';
    updateDisplay();
}

document.querySelector('.buttons').addEventListener('click', (event) => {
    const button = event.target.closest('button');
    if (!button) return;
    if (button.dataset.digit !== undefined) inputDigit(button.dataset.digit);
    else if (button.dataset.operator) inputOperator(button.dataset.operator);
    else if (button.dataset.action === 'equals') calculate();
    else if (button.dataset.action === 'clear') clearAll();
    else if (button.dataset.action === 'delete') deleteLast();
    else if (button.dataset.action === 'decimal') inputDecimal();
});

updateDisplay();""",
)


TODO_TEMPLATE = AppTemplate(
    name="Todo List",
    keywords=("todo", "task", "タスク", "やること"),
    description="Todo List - add, complete and delete tasks",
    instructions="Open index.html in a browser. Type a task and press Enter or Add; click the checkbox to complete it.",
    markup=_document("Todo List", """    <div class="container">
        <h1>Todo List</h1>
        <div class="input-container">
            <input type="text" id="todoInput" placeholder="Add a new task...">
            <button class="add-btn" id="addButton">Add</button>
        </div>
        <div id="todoList"></div>
    </div>"""),
    stylesheet="""* { margin: 0; padding: 0; box-sizing: border-box; }
body {
    font-family: system-ui, -apple-system, sans-serif;
    background: linear-gradient(135deg, #74b9ff 0%, #0984e3 100%);
    min-height: 100vh;
    display: flex;
    align-items: center;
    justify-content: center;
}
.container {
    background: white;
    border-radius: 20px;
    box-shadow: 0 20px 60px rgba(0, 0, 0, 0.1);
    padding: 40px;
    max-width: 500px;
    width: 100%;
}
h1 { text-align: center; color: #2d3436; margin-bottom: 30px; }
.input-container { display: flex; gap: 10px; margin-bottom: 30px; }
input[type="text"] {
    flex: 1;
    padding: 15px;
    border: 2px solid #ddd;
    border-radius: 10px;
    font-size: 16px;
}
.add-btn, .delete-btn {
    border: none;
    border-radius: 10px;
    color: white;
    cursor: pointer;
}
.add-btn { background: #0984e3; padding: 15px 25px; }
.delete-btn { background: #e17055; padding: 6px 12px; }
.todo-item {
    display: flex;
    align-items: center;
    gap: 10px;
    padding: 12px 0;
    border-bottom: 1px solid #eee;
}
.todo-item.completed span { text-decoration: line-through; opacity: 0.6; }""",
    script="""let todos = [];
let nextId = 1;

const input = document.getElementById('todoInput');
const list = document.getElementById('todoList');

function addTodo() {
    const text = input.value.trim();
    if (!text) return;
    todos.push({ id: nextId++, text: text, completed: false });
    input.value = '';
    renderTodos();
}

function toggleTodo(id) {
    todos = todos.map((todo) => todo.id === id ? { ...todo, completed: !todo.completed } : todo);
    renderTodos();
}

function deleteTodo(id) {
    todos = todos.filter((todo) => todo.id !== id);
    renderTodos();
}

function renderTodos() {
    list.replaceChildren();
    todos.forEach((todo) => {
        const item = document.createElement('div');
        item.className = 'todo-item' + (todo.completed ? ' completed' : '');

        const checkbox = document.createElement('input');
        checkbox.type = 'checkbox';
        checkbox.checked = todo.completed;
        checkbox.addEventListener('change', () => toggleTodo(todo.id));

        const label = document.createElement('span');
        label.style.flex = '1';
        label.textContent = todo.text;

        const remove = document.createElement('button');
        remove.className = 'delete-btn';
        remove.textContent = 'Delete';
        remove.addEventListener('click', () => deleteTodo(todo.id));

        item.append(checkbox, label, remove);
        list.appendChild(item);
    });
}

document.getElementById('addButton').addEventListener('click', addTodo);
input.addEventListener('keypress', (event) => {
    if (event.key === 'Enter') addTodo();
});""",
)


DASHBOARD_TEMPLATE = AppTemplate(
    name="Dashboard",
    keywords=("dashboard", "admin", "ダッシュボード", "管理"),
    description="Dashboard - a card-based overview layout with interactive panels",
    instructions="Open index.html in a browser. Click a card's button to toggle its details.",
    markup=_document("Dashboard", """    <div class="dashboard">
        <div class="card">
            <h3>Analytics</h3>
            <p>Real-time data analysis and visualisation.</p>
            <p class="details" hidden>No data sources are connected yet.</p>
            <button class="btn">Details</button>
        </div>
        <div class="card">
            <h3>Users</h3>
            <p>Manage accounts and permissions.</p>
            <p class="details" hidden>No users have been added yet.</p>
            <button class="btn">Details</button>
        </div>
        <div class="card">
            <h3>Settings</h3>
            <p>System configuration and customisation.</p>
            <p class="details" hidden>All settings are at their defaults.</p>
            <button class="btn">Details</button>
        </div>
    </div>"""),
    stylesheet="""* { margin: 0; padding: 0; box-sizing: border-box; }
body {
    font-family: system-ui, -apple-system, sans-serif;
    background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
    min-height: 100vh;
    padding: 20px;
}
.dashboard {
    max-width: 1200px;
    margin: 0 auto;
    display: grid;
    grid-template-columns: repeat(auto-fit, minmax(300px, 1fr));
    gap: 20px;
}
.card {
    background: rgba(255, 255, 255, 0.1);
    border-radius: 20px;
    padding: 30px;
    color: white;
    box-shadow: 0 8px 32px rgba(31, 38, 135, 0.37);
    border: 1px solid rgba(255, 255, 255, 0.18);
    transition: transform 0.3s ease;
}
.card:hover { transform: translateY(-5px); }
.card h3 { font-size: 1.5rem; margin-bottom: 15px; }
.card p { opacity: 0.8; line-height: 1.6; }
.btn {
    background: linear-gradient(45deg, #ff6b6b, #ee5a52);
    color: white;
    border: none;
    padding: 12px 24px;
    border-radius: 25px;
    cursor: pointer;
    font-weight: 600;
    margin-top: 15px;
}""",
    script="""document.querySelectorAll('.card').forEach((card) => {
    const button = card.querySelector('.btn');
    const details = card.querySelector('.details');
    button.addEventListener('click', () => {
        details.hidden = !details.hidden;
        button.textContent = details.hidden ? 'Details' : 'Hide';
    });
});""",
)


def default_registry() -> TemplateRegistry:
    """Registry with the built-in templates; calculator is the default"""
    registry = TemplateRegistry()
    registry.register(CALCULATOR_TEMPLATE, default=True)
    registry.register(TODO_TEMPLATE)
    registry.register(DASHBOARD_TEMPLATE)
    return registry
