"""
Builtin starter chunks loaded into an empty knowledge base.

Each entry is a (stable id, topic, content) triple; the chunk text is
rendered as "Topic: <topic>" followed by the content.
"""

from typing import List, Tuple

SEED_CHUNKS: List[Tuple[str, str, str]] = [
    (
        "builtin_html_starter",
        "HTML starter page template",
        """Starter HTML template:

<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Start</title>
  <style>body{font-family:Arial;margin:40px}</style>
</head>
<body>
  <h1>Hello, world!</h1>
  <p>This is a starter template.</p>
</body>
</html>""",
    ),
    (
        "builtin_js_weather",
        "JavaScript: fetching the weather without API keys",
        """Open-Meteo example (no API keys required):

```javascript
async function getWeather(lat=55.75, lon=37.62) {
  const url = `https://api.open-meteo.com/v1/forecast?latitude=${lat}&longitude=${lon}&current_weather=true&timezone=auto`;
  const r = await fetch(url);
  const data = await r.json();
  return data.current_weather;
}
getWeather().then(console.log);
```""",
    ),
    (
        "builtin_express_server",
        "Node.js Express server template",
        """Minimal server:

```javascript
const express = require('express');
const app = express();
app.use(express.json());
app.get('/ping', (req, res) => res.json({ ok: true }));
app.listen(3000, () => console.log('http://localhost:3000'));
```""",
    ),
    (
        "builtin_css_container",
        "CSS: basic responsive container",
        """CSS container:

```css
.container{max-width:960px;margin:0 auto;padding:0 16px}
@media (max-width:600px){.container{padding:0 10px}}
```""",
    ),
]


def render_seed(topic: str, content: str) -> str:
    return f"Topic: {topic}\n{content}"
