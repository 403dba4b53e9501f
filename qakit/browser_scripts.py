"""
Scripts JavaScript executados dentro da pagina via page.evaluate.

Compartilhados pelo PageHealthScorer e pelo EvidenceCollector. Todos
retornam objetos serializaveis com chaves em snake_case.
"""

# Metricas leves usadas no score de saude
PAGE_TIMINGS_JS = """
() => {
  const navigation = performance.getEntriesByType('navigation')[0];
  const paint = performance.getEntriesByType('paint');
  const find = (name) => {
    const entry = paint.find(p => p.name === name);
    return entry ? entry.startTime : null;
  };
  return {
    dom_content_loaded: navigation && navigation.domContentLoadedEventEnd
      ? navigation.domContentLoadedEventEnd - navigation.domContentLoadedEventStart : null,
    load_complete: navigation && navigation.loadEventEnd
      ? navigation.loadEventEnd - navigation.loadEventStart : null,
    first_paint: find('first-paint'),
    first_contentful_paint: find('first-contentful-paint'),
    memory: performance.memory ? {
      used_js_heap_size: performance.memory.usedJSHeapSize,
      total_js_heap_size: performance.memory.totalJSHeapSize,
      js_heap_size_limit: performance.memory.jsHeapSizeLimit
    } : null,
    resource_count: performance.getEntriesByType('resource').length,
    timestamp: Date.now()
  };
}
"""

# Metricas completas para o bundle de evidencias
PERFORMANCE_METRICS_JS = """
() => {
  const navigation = performance.getEntriesByType('navigation')[0];
  const paint = performance.getEntriesByType('paint');
  const resources = performance.getEntriesByType('resource');
  const byType = {};
  resources.forEach(r => {
    const type = r.initiatorType || 'unknown';
    byType[type] = (byType[type] || 0) + 1;
  });
  return {
    navigation: navigation ? {
      dom_content_loaded: navigation.domContentLoadedEventEnd - navigation.domContentLoadedEventStart,
      load_complete: navigation.loadEventEnd - navigation.loadEventStart,
      redirect_time: navigation.redirectEnd - navigation.redirectStart,
      dns_time: navigation.domainLookupEnd - navigation.domainLookupStart,
      connect_time: navigation.connectEnd - navigation.connectStart,
      response_time: navigation.responseEnd - navigation.responseStart
    } : null,
    paint: paint.map(p => ({ name: p.name, start_time: p.startTime })),
    resources: {
      total: resources.length,
      by_type: byType,
      slow_requests: resources
        .filter(r => r.duration > 1000)
        .map(r => ({ name: r.name, duration: r.duration }))
        .slice(0, 10)
    },
    memory: performance.memory ? {
      used_js_heap_size: performance.memory.usedJSHeapSize,
      total_js_heap_size: performance.memory.totalJSHeapSize,
      js_heap_size_limit: performance.memory.jsHeapSizeLimit
    } : null,
    timestamp: Date.now()
  };
}
"""

ACCESSIBILITY_ISSUES_JS = """
() => {
  const issues = [];

  const imagesWithoutAlt = document.querySelectorAll('img:not([alt]), img[alt=""]');
  if (imagesWithoutAlt.length > 0) {
    issues.push({
      type: 'missing-alt-text',
      count: imagesWithoutAlt.length,
      elements: Array.from(imagesWithoutAlt).slice(0, 5).map(img => img.src),
      severity: 'medium'
    });
  }

  const unlabeledInputs = Array.from(document.querySelectorAll(
    'input:not([type="hidden"]):not([type="submit"]):not([type="button"])'
  )).filter(input => {
    if (input.getAttribute('aria-label') || input.getAttribute('aria-labelledby')) return false;
    if (input.id && document.querySelector(`label[for="${input.id}"]`)) return false;
    return !input.closest('label');
  });
  if (unlabeledInputs.length > 0) {
    issues.push({ type: 'missing-form-labels', count: unlabeledInputs.length, severity: 'high' });
  }

  const unlabeledButtons = Array.from(document.querySelectorAll('button, [role="button"]'))
    .filter(button => {
      const hasText = (button.textContent || '').trim().length > 0;
      return !hasText && !button.getAttribute('aria-label') && !button.getAttribute('aria-labelledby');
    });
  if (unlabeledButtons.length > 0) {
    issues.push({ type: 'unlabeled-buttons', count: unlabeledButtons.length, severity: 'high' });
  }

  const headings = document.querySelectorAll('h1, h2, h3, h4, h5, h6');
  if (headings.length === 0) {
    issues.push({ type: 'missing-headings', count: 1, severity: 'low' });
  } else {
    const h1Count = document.querySelectorAll('h1').length;
    if (h1Count === 0) {
      issues.push({ type: 'missing-h1', count: 1, severity: 'medium' });
    } else if (h1Count > 1) {
      issues.push({ type: 'multiple-h1', count: h1Count, severity: 'low' });
    }
  }

  return issues;
}
"""

# Clona o documento, remove <script> e embute as regras CSS acessiveis
DOM_SNAPSHOT_JS = """
() => {
  const clone = document.documentElement.cloneNode(true);
  clone.querySelectorAll('script').forEach(script => script.remove());

  let inlineCSS = '';
  Array.from(document.styleSheets).forEach(sheet => {
    try {
      Array.from(sheet.cssRules).forEach(rule => { inlineCSS += rule.cssText + '\\n'; });
    } catch (e) {
      // folhas cross-origin nao sao legiveis
    }
  });

  const head = clone.querySelector('head');
  if (head) {
    const style = document.createElement('style');
    style.textContent = inlineCSS;
    head.appendChild(style);
  }
  return clone.outerHTML;
}
"""

STORAGE_STATE_JS = """
() => {
  const dump = (storage) => {
    const out = {};
    for (let i = 0; i < storage.length; i++) {
      const key = storage.key(i);
      if (key) out[key] = storage.getItem(key) || '';
    }
    return out;
  };
  return {
    local_storage: dump(window.localStorage),
    session_storage: dump(window.sessionStorage),
    cookies: document.cookie
  };
}
"""

ACCESSIBILITY_TREE_JS = """
() => {
  const info = (el) => ({
    tag_name: el.tagName,
    role: el.getAttribute('role') || el.tagName.toLowerCase(),
    aria_label: el.getAttribute('aria-label'),
    aria_labelledby: el.getAttribute('aria-labelledby'),
    aria_describedby: el.getAttribute('aria-describedby'),
    tab_index: el.tabIndex,
    has_text: ((el.textContent || '').trim().length) > 0
  });
  const interactive = Array.from(document.querySelectorAll(
    'a, button, input, select, textarea, [role=button], [tabindex]'
  )).map(info);
  const headings = Array.from(document.querySelectorAll('h1, h2, h3, h4, h5, h6')).map(h => ({
    level: parseInt(h.tagName[1]),
    text: (h.textContent || '').trim(),
    has_id: !!h.id
  }));
  return {
    interactive_elements: interactive.slice(0, 50),
    headings: headings,
    title: document.title,
    lang: document.documentElement.lang,
    has_skip_link: !!document.querySelector('a[href^="#"]:first-child')
  };
}
"""

USER_AGENT_JS = "() => navigator.userAgent"
