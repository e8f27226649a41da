"""Starter project seeded into new workspaces: a minimal Vite + React app."""

import json

DEFAULT_ACTIVE_FILE = "src/App.jsx"


def _package_json(name: str) -> str:
    return json.dumps(
        {
            "name": name,
            "private": True,
            "version": "1.0.0",
            "type": "module",
            "scripts": {
                "dev": "vite",
                "build": "vite build",
                "preview": "vite preview",
            },
            "dependencies": {
                "react": "^18.2.0",
                "react-dom": "^18.2.0",
            },
            "devDependencies": {
                "@vitejs/plugin-react": "^4.2.1",
                "vite": "^5.1.0",
            },
        },
        indent=2,
    )


VITE_CONFIG = """import { defineConfig } from 'vite';
import react from '@vitejs/plugin-react';

export default defineConfig({
  plugins: [react()],
});"""

INDEX_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <title>{title}</title>
</head>
<body>
  <div id="root"></div>
  <script type="module" src="/src/main.jsx"></script>
</body>
</html>"""

MAIN_JSX = """import React from 'react';
import ReactDOM from 'react-dom/client';
import App from './App';
import './index.css';

ReactDOM.createRoot(document.getElementById('root')).render(
  <React.StrictMode>
    <App />
  </React.StrictMode>
);"""

APP_JSX = """import { useState } from 'react';
import './App.css';

function App() {
  const [count, setCount] = useState(0);

  return (
    <div className="app">
      <header className="header">
        <h1>Welcome to your workspace</h1>
        <p>Edit <code>src/App.jsx</code> and save to see changes!</p>
      </header>
      <div className="card">
        <button onClick={() => setCount(c => c + 1)}>
          Count: {count}
        </button>
      </div>
    </div>
  );
}

export default App;"""

APP_CSS = """.app {
  max-width: 600px;
  margin: 0 auto;
  padding: 2rem;
  text-align: center;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
}

.header p {
  color: #666;
  margin-top: 0.5rem;
}

code {
  background: #f0f0f0;
  padding: 0.2rem 0.5rem;
  border-radius: 4px;
}

.card {
  margin-top: 2rem;
}

.card button {
  padding: 0.8rem 1.6rem;
  font-size: 1rem;
  border: none;
  border-radius: 8px;
  background: #667eea;
  color: white;
  cursor: pointer;
}"""

INDEX_CSS = """*,
*::before,
*::after {
  box-sizing: border-box;
  margin: 0;
  padding: 0;
}

body {
  min-height: 100vh;
  display: flex;
  align-items: center;
  justify-content: center;
  background: #fafafa;
}"""


def starter_files(project_name: str = "workbench-project") -> dict[str, str]:
    """Files of the starter project, keyed by path."""
    return {
        "package.json": _package_json(project_name),
        "vite.config.js": VITE_CONFIG,
        "index.html": INDEX_HTML.replace("{title}", project_name),
        "src/main.jsx": MAIN_JSX,
        "src/App.jsx": APP_JSX,
        "src/App.css": APP_CSS,
        "src/index.css": INDEX_CSS,
    }
