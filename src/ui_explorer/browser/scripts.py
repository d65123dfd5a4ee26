"""
JavaScript snippets evaluated in the page through ``BrowserDriver.eval``.

Every script is a self-invoking expression that returns a string (or a
JSON-encoded string) so that any driver can pass it through untouched.
The explorer never interprets the page itself; these strings are the
whole contract between the engine and the DOM.
"""

import json

# Elements that change on their own and must not split states.
TRANSIENT_SELECTORS = [
    "[class*='loading']",
    "[class*='spinner']",
    "[class*='skeleton']",
    "[aria-busy='true']",
    "[class*='toast']",
    "[class*='notification']",
    "[class*='snackbar']",
    "[role='alert']",
    "[class*='timestamp']",
    "[class*='time-ago']",
    "time",
    "[class*='avatar']",
    "[class*='profile-image']",
    "[class*='ad-']",
    "[id*='google_ads']",
    "iframe[src*='ads']",
    "[class*='animate']",
    "[class*='transition']",
]

_TRANSIENT_JS = json.dumps(TRANSIENT_SELECTORS)

_IS_TRANSIENT_FN = """
  const transientSelectors = %s;
  function isTransient(el) {
    try {
      return transientSelectors.some(sel => el.matches && el.matches(sel));
    } catch (e) {
      return false;
    }
  }
""" % _TRANSIENT_JS


# =============================================================================
# State fingerprint
# =============================================================================

DOM_STRUCTURE_SCRIPT = """
(function() {
%s
  function getStructure(el, depth) {
    if (!el || !el.tagName || depth > 15) return '';
    if (isTransient(el)) return '';

    const tag = el.tagName.toLowerCase();
    const role = el.getAttribute('role') || '';
    const type = el.getAttribute('type') || '';

    let sig = tag;
    if (role) sig += '[role=' + role + ']';
    if (type && (tag === 'input' || tag === 'button')) sig += '[type=' + type + ']';

    const children = Array.from(el.children || [])
      .map(child => getStructure(child, depth + 1))
      .filter(Boolean);

    if (children.length > 0) {
      return sig + '{' + children.join(',') + '}';
    }
    return sig;
  }

  return getStructure(document.body, 0);
})()
""" % _IS_TRANSIENT_FN

VISIBLE_TEXT_SCRIPT = r"""
(function() {
%s
  function isVisible(el) {
    if (!el || !el.getBoundingClientRect) return false;
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') return false;
    const rect = el.getBoundingClientRect();
    return rect.width > 0 && rect.height > 0;
  }

  function getVisibleText(el) {
    if (!el || isTransient(el)) return '';
    let text = '';
    for (const node of el.childNodes) {
      if (node.nodeType === Node.TEXT_NODE) {
        text += node.textContent;
      }
    }
    for (const child of el.children || []) {
      if (isVisible(child)) {
        text += getVisibleText(child);
      }
    }
    return text;
  }

  return getVisibleText(document.body)
    .replace(/\s+/g, ' ')
    .trim()
    .slice(0, 10000);
})()
""" % _IS_TRANSIENT_FN

FORM_STATE_SCRIPT = """
(function() {
  const forms = Array.from(document.querySelectorAll('form'));
  const inputs = Array.from(document.querySelectorAll('input, select, textarea'));

  const formStates = forms.map(form => form.id || form.name || form.action || 'form');

  const inputStates = inputs.map(input => {
    const type = input.type || 'text';
    const name = input.name || input.id || '';

    if (type === 'password' || name.toLowerCase().includes('password')) {
      return name + ':password:' + (input.value ? 'filled' : 'empty');
    }
    if (type === 'checkbox' || type === 'radio') {
      return name + ':' + type + ':' + input.checked;
    }
    if (input.tagName === 'SELECT') {
      return name + ':select:' + input.value;
    }
    return name + ':' + type + ':' + (input.value ? 'filled' : 'empty');
  });

  return JSON.stringify({ forms: formStates, inputs: inputStates });
})()
"""

DIALOG_STATE_SCRIPT = """
(function() {
  const dialogs = Array.from(document.querySelectorAll(
    'dialog[open], [role="dialog"], [role="alertdialog"], [aria-modal="true"], ' +
    '[class*="modal"]:not([style*="display: none"]):not([style*="display:none"]), ' +
    '[class*="popup"]:not([style*="display: none"]):not([style*="display:none"]), ' +
    '[class*="overlay"]:not([style*="display: none"]):not([style*="display:none"])'
  )).filter(el => {
    const style = window.getComputedStyle(el);
    return style.display !== 'none' && style.visibility !== 'hidden';
  });

  return JSON.stringify(dialogs.map(d => {
    const role = d.getAttribute('role') || 'dialog';
    const label = d.getAttribute('aria-label') || d.getAttribute('aria-labelledby') || '';
    return role + ':' + (label || d.id || 'unnamed');
  }));
})()
"""

AUTH_STATE_SCRIPT = """
(function() {
  const indicators = [];

  const userElements = document.querySelectorAll(
    '[class*="user-menu"], [class*="profile"], [class*="avatar"], ' +
    '[class*="account"], [aria-label*="account"], [aria-label*="profile"]'
  );
  if (userElements.length > 0) indicators.push('user-ui-present');

  const buttons = Array.from(document.querySelectorAll('button, a'));
  const label = el => (el.textContent || '').trim().toLowerCase();
  const hasLogin = document.querySelector('a[href*="login"]') ||
    buttons.some(b => ['log in', 'sign in'].includes(label(b)));
  const hasLogout = document.querySelector('a[href*="logout"]') ||
    buttons.some(b => ['log out', 'sign out'].includes(label(b)));
  if (hasLogin) indicators.push('login-btn');
  if (hasLogout) indicators.push('logout-btn');

  const cookies = document.cookie;
  if (cookies.includes('session') || cookies.includes('token') || cookies.includes('auth')) {
    indicators.push('auth-cookie');
  }

  return indicators.join(',');
})()
"""


# =============================================================================
# Action candidates
# =============================================================================

EXTRACT_CANDIDATES_SCRIPT = r"""
(function() {
  const candidates = [];
  const interactiveSelectors = [
    'a[href]', 'button', 'input[type="submit"]', 'input[type="button"]',
    '[role="button"]', '[role="link"]', '[role="tab"]', '[role="menuitem"]',
    '[onclick]', 'select', 'input:not([type="hidden"])', 'textarea',
    '[class*="btn"]', '[class*="button"]',
  ];
  const elements = document.querySelectorAll(interactiveSelectors.join(', '));

  function isVisible(el) {
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return false;
    const rect = el.getBoundingClientRect();
    return rect.width > 0 && rect.height > 0;
  }

  function getSelector(el) {
    if (el.id) return '#' + CSS.escape(el.id);
    if (el.name) return el.tagName.toLowerCase() + '[name="' + el.name.replace(/"/g, '\\"') + '"]';
    const parts = [];
    let current = el;
    for (let i = 0; current && i < 3; i++) {
      let part = current.tagName.toLowerCase();
      if (current.id) {
        parts.unshift('#' + CSS.escape(current.id));
        break;
      }
      const classes = Array.from(current.classList || [])
        .filter(c => c && !c.includes('active') && !c.includes('hover') && !c.includes('focus'))
        .slice(0, 2);
      if (classes.length) part += '.' + classes.map(c => CSS.escape(c)).join('.');
      parts.unshift(part);
      current = current.parentElement;
    }
    return parts.join(' > ');
  }

  function getActionType(el) {
    const tag = el.tagName.toLowerCase();
    if (tag === 'input' || tag === 'textarea') {
      if (el.type === 'submit' || el.type === 'button') return 'click';
      return 'fill';
    }
    if (tag === 'select') return 'select';
    return 'click';
  }

  function isDisabled(el) {
    return el.disabled || el.hasAttribute('disabled') || el.getAttribute('aria-disabled') === 'true';
  }

  const inputQuery = 'input:not([type="hidden"]):not([type="submit"]):not([type="button"]), textarea';

  function findAssociatedInputs(el) {
    const scope = el.closest('form') || el.closest('div, section, nav, header');
    if (!scope) return [];
    return Array.from(scope.querySelectorAll(inputQuery)).filter(isVisible);
  }

  function findDisabledSubmitButton(el) {
    const form = el.closest('form');
    if (form) {
      const buttons = form.querySelectorAll('button[type="submit"], button:not([type]), input[type="submit"]');
      return Array.from(buttons).find(btn => isDisabled(btn) && isVisible(btn));
    }
    const container = el.closest('div, section, nav, header');
    if (container) {
      const buttons = container.querySelectorAll('button, [role="button"]');
      return Array.from(buttons).find(btn => isDisabled(btn) && isVisible(btn));
    }
    return null;
  }

  for (const el of elements) {
    if (!isVisible(el)) continue;

    const tag = el.tagName.toLowerCase();
    const text = (el.textContent || '').trim().slice(0, 100);
    const ariaLabel = el.getAttribute('aria-label') || '';
    const placeholder = el.getAttribute('placeholder') || '';
    const actionType = getActionType(el);
    const disabled = isDisabled(el);

    let hasEmptyRequiredInput = false;
    if (disabled && (tag === 'button' || el.type === 'submit')) {
      hasEmptyRequiredInput = findAssociatedInputs(el)
        .some(input => !input.value || input.value.trim() === '');
    }

    let enablesSubmitButton = false;
    if (actionType === 'fill' && findDisabledSubmitButton(el) && (!el.value || el.value.trim() === '')) {
      enablesSubmitButton = true;
    }

    candidates.push({
      selector: getSelector(el),
      actionType: actionType,
      element: {
        tagName: tag,
        text: text || ariaLabel || placeholder,
        role: el.getAttribute('role') || '',
        href: el.href || '',
        type: el.type || '',
        formId: el.form ? (el.form.id || el.form.name || 'form') : '',
        placeholder: placeholder,
        ariaLabel: ariaLabel,
        isDisabled: !!disabled,
        hasEmptyRequiredInput: hasEmptyRequiredInput,
        enablesSubmitButton: enablesSubmitButton,
      }
    });
  }

  const seen = new Set();
  const unique = candidates.filter(c => {
    if (seen.has(c.selector)) return false;
    seen.add(c.selector);
    return true;
  });

  return JSON.stringify(unique.slice(0, 100));
})()
"""


# =============================================================================
# Coverage
# =============================================================================

DETECT_DIALOGS_SCRIPT = """
(function() {
  const dialogs = Array.from(document.querySelectorAll(
    'dialog[open], [role="dialog"], [role="alertdialog"], [aria-modal="true"], ' +
    '[class*="modal"]:not([style*="display: none"]):not([style*="display:none"]), ' +
    '[class*="popup"]:not([style*="display: none"]):not([style*="display:none"])'
  )).filter(el => {
    const style = window.getComputedStyle(el);
    return style.display !== 'none' && style.visibility !== 'hidden';
  });

  return JSON.stringify(dialogs.map(d => {
    const role = d.getAttribute('role') || 'dialog';
    const label = d.getAttribute('aria-label') || d.getAttribute('aria-labelledby') || '';
    const heading = d.querySelector('h1, h2, h3, h4, h5, h6');
    const title = heading ? heading.textContent.trim().slice(0, 50) : '';
    return [role, d.id || '', label, title].filter(Boolean).join('-') || 'unnamed-dialog';
  }));
})()
"""

DETECT_FORMS_SCRIPT = """
(function() {
  const forms = Array.from(document.querySelectorAll('form'));
  return JSON.stringify(forms.map(f => {
    const method = (f.method || 'get').toUpperCase();
    const inputCount = f.querySelectorAll('input, select, textarea').length;
    let actionPath = '';
    try {
      actionPath = f.action ? new URL(f.action, window.location.href).pathname : '';
    } catch (e) {}
    return [method, actionPath, f.id || '', f.name || '', 'inputs:' + inputCount]
      .filter(Boolean).join('-') || 'unnamed-form';
  }));
})()
"""


# =============================================================================
# Exploration graph node metadata
# =============================================================================

DOM_SUMMARY_SCRIPT = r"""
(function() {
  const MAX_ELEMENTS = 50;

  function getElementSummary(el) {
    const tag = el.tagName.toLowerCase();
    const text = (el.textContent || '').trim().slice(0, 100);
    const role = el.getAttribute('role') || '';
    const ariaLabel = el.getAttribute('aria-label') || '';
    const placeholder = el.getAttribute('placeholder') || '';
    const href = el.getAttribute('href') || '';
    const type = el.getAttribute('type') || '';

    let summary = tag;
    if (role) summary += '[role=' + role + ']';
    if (type && (tag === 'input' || tag === 'button')) summary += '[type=' + type + ']';
    if (href && tag === 'a') {
      let path = href;
      try {
        if (href.startsWith('http')) path = new URL(href).pathname;
      } catch (e) {}
      summary += '[href=' + path.slice(0, 50) + ']';
    }
    const label = ariaLabel || placeholder || text;
    if (label) summary += ': "' + label.slice(0, 50) + '"';
    return summary;
  }

  const selectors = [
    'nav a', 'header a', 'footer a',
    'button', 'input', 'select', 'textarea',
    '[role="button"]', '[role="link"]', '[role="tab"]',
    'form', 'h1', 'h2', 'h3',
    '[class*="search"]', '[class*="login"]', '[class*="signup"]'
  ];

  const elements = [];
  const seen = new Set();
  for (const selector of selectors) {
    try {
      for (const el of document.querySelectorAll(selector)) {
        if (elements.length >= MAX_ELEMENTS) break;
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') continue;
        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) continue;
        const summary = getElementSummary(el);
        if (!seen.has(summary)) {
          seen.add(summary);
          elements.push(summary);
        }
      }
    } catch (e) {}
    if (elements.length >= MAX_ELEMENTS) break;
  }

  return elements.join('\n');
})()
"""

DETECT_SEARCH_SCRIPT = """
(function() {
  const searchSelectors = [
    'input[type="search"]', 'input[name*="search"]',
    'input[placeholder*="search" i]', 'input[aria-label*="search" i]',
    '[role="searchbox"]', 'input[class*="search" i]', 'input[id*="search" i]'
  ];
  for (const selector of searchSelectors) {
    try {
      const el = document.querySelector(selector);
      if (el) {
        const style = window.getComputedStyle(el);
        if (style.display !== 'none' && style.visibility !== 'hidden') return 'true';
      }
    } catch (e) {}
  }
  return 'false';
})()
"""

HAS_VISIBLE_FORMS_SCRIPT = """
(function() {
  for (const form of document.querySelectorAll('form')) {
    const style = window.getComputedStyle(form);
    if (style.display === 'none' || style.visibility === 'hidden') continue;
    const rect = form.getBoundingClientRect();
    if (rect.width > 0 && rect.height > 0) return 'true';
  }
  return 'false';
})()
"""

GET_TITLE_SCRIPT = "document.title || ''"

COUNT_INTERACTIVE_SCRIPT = """
(function() {
  const selectors = [
    'a[href]', 'button', 'input', 'select', 'textarea',
    '[role="button"]', '[role="link"]', '[onclick]'
  ];
  let count = 0;
  const seen = new Set();
  for (const selector of selectors) {
    for (const el of document.querySelectorAll(selector)) {
      if (seen.has(el)) continue;
      seen.add(el);
      const style = window.getComputedStyle(el);
      if (style.display === 'none' || style.visibility === 'hidden') continue;
      const rect = el.getBoundingClientRect();
      if (rect.width > 0 && rect.height > 0) count++;
    }
  }
  return String(count);
})()
"""


# =============================================================================
# Driver-side page snapshots
# =============================================================================

# Raw material for PageSnapshot; hashing happens on the Python side.
PAGE_SNAPSHOT_SCRIPT = r"""
(function() {
%s
  function signature(el, depth) {
    if (!el || !el.tagName || depth > 15 || isTransient(el)) return '';
    const children = Array.from(el.children || [])
      .map(child => signature(child, depth + 1))
      .filter(Boolean);
    const tag = el.tagName.toLowerCase();
    return children.length ? tag + '{' + children.join(',') + '}' : tag;
  }

  const body = document.body;
  const text = body ? (body.innerText || '').replace(/\s+/g, ' ').trim() : '';
  const controls = Array.from(document.querySelectorAll('input, select, textarea, details, [aria-expanded], [aria-selected]'))
    .map(el => [
      el.tagName.toLowerCase(),
      el.name || el.id || '',
      el.type === 'password' ? (el.value ? 'filled' : 'empty') : (el.value || ''),
      el.checked ? 'checked' : '',
      el.open ? 'open' : '',
      el.getAttribute('aria-expanded') || '',
      el.getAttribute('aria-selected') || '',
    ].join(':'));
  const dialogs = Array.from(document.querySelectorAll(
    'dialog[open], [role="dialog"], [role="alertdialog"], [aria-modal="true"]'
  )).filter(el => {
    const style = window.getComputedStyle(el);
    return style.display !== 'none' && style.visibility !== 'hidden';
  });

  return JSON.stringify({
    url: window.location.href,
    domSignature: signature(body, 0),
    visibleText: text.slice(0, 10000),
    interactiveState: controls.join('|'),
    elementCount: document.querySelectorAll('*').length,
    textLength: text.length,
    dialogCount: dialogs.length,
  });
})()
""" % _IS_TRANSIENT_FN

# Cheap probe used while waiting for the DOM to settle.
DOM_ACTIVITY_SCRIPT = """
(function() {
  const body = document.body;
  return document.querySelectorAll('*').length + ':' + (body ? (body.innerText || '').length : 0);
})()
"""

GET_LINKS_SCRIPT = """
(function() {
  const links = [];
  document.querySelectorAll('a[href]').forEach(a => {
    const href = a.getAttribute('href');
    if (href && !href.startsWith('javascript:') && !href.startsWith('mailto:') &&
        !href.startsWith('tel:') && !href.startsWith('#')) {
      links.push(a.href);
    }
  });
  return JSON.stringify(links);
})()
"""
