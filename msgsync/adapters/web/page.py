"""Server-rendered message board page."""

from html import escape

from msgsync.domain.models import SyncState


def render_items(state: SyncState) -> str:
    if not state.items:
        return '<li class="empty">No messages yet.</li>'
    return "\n".join(
        f'<li><span class="ts">{escape(m.created_at)}</span> {escape(m.content)}</li>'
        for m in state.items
    )


def render_page(state: SyncState, title: str = "Messages") -> str:
    error = escape(state.last_error) if state.last_error else ""
    return f"""
    <html>
      <head>
        <title>{escape(title)}</title>
        <style>
          body {{ font-family: monospace; max-width: 800px; margin: 50px auto; }}
          form {{ display: flex; gap: 5px; }}
          input[type=text] {{ flex: 1; padding: 8px; font-size: 16px; }}
          button {{ padding: 8px 16px; font-size: 16px; }}
          .error {{ background: #ffebee; color: #b71c1c; padding: 10px; border-radius: 5px; margin-top: 10px; }}
          .error:empty {{ display: none; }}
          .pending {{ color: #888; visibility: hidden; }}
          .pending.on {{ visibility: visible; }}
          ul {{ list-style: none; padding: 0; }}
          li {{ background: #e8f5e9; padding: 10px; border-radius: 5px; margin: 5px 0; }}
          li.empty {{ background: none; color: #888; }}
          .ts {{ color: #666; font-size: 12px; margin-right: 8px; }}
        </style>
      </head>
      <body>
        <h1>{escape(title)}</h1>

        <form id="compose">
          <input type="text" id="content" placeholder="Write a message" value="{escape(state.draft)}" />
          <button type="submit">Send</button>
          <button type="button" id="refresh">Refresh</button>
        </form>
        <p class="pending{' on' if state.pending else ''}" id="pending">Loading...</p>
        <div class="error" id="error">{error}</div>

        <ul id="items">
{render_items(state)}
        </ul>

        <script>
          function esc(s) {{
            const d = document.createElement('div');
            d.textContent = s == null ? '' : String(s);
            return d.innerHTML;
          }}

          function render(state) {{
            const items = document.getElementById('items');
            items.innerHTML = state.items.length
              ? state.items.map(m =>
                  '<li><span class="ts">' + esc(m.created_at) + '</span> ' + esc(m.content) + '</li>'
                ).join('')
              : '<li class="empty">No messages yet.</li>';
            document.getElementById('error').textContent = state.last_error || '';
            document.getElementById('pending').classList.toggle('on', state.pending);
          }}

          async function post(path, body) {{
            const res = await fetch(path, {{
              method: 'POST',
              headers: {{ 'Content-Type': 'application/json' }},
              body: body ? JSON.stringify(body) : null,
            }});
            return res.json();
          }}

          document.getElementById('compose').addEventListener('submit', async (e) => {{
            e.preventDefault();
            const input = document.getElementById('content');
            const state = await post('/messages', {{ content: input.value }});
            if (input.value.trim()) input.value = state.draft;
            render(state);
          }});

          document.getElementById('refresh').addEventListener('click', async () => {{
            render(await post('/refresh'));
          }});

          const events = new EventSource('/api/events');
          events.addEventListener('state', (e) => render(JSON.parse(e.data)));
        </script>
      </body>
    </html>
    """
