"""
HTML pages served by the dashboard. Data is loaded client-side from the JSON API.
"""

STYLE = """
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: #0d1117;
            color: #c9d1d9;
            padding: 20px;
        }
        .container { max-width: 1400px; margin: 0 auto; }
        h1 {
            font-size: 28px;
            margin-bottom: 10px;
            color: #58a6ff;
        }
        .subtitle {
            color: #8b949e;
            margin-bottom: 30px;
            font-size: 14px;
        }
        nav { margin-bottom: 20px; }
        nav a { color: #58a6ff; margin-right: 16px; text-decoration: none; }
        nav a:hover { text-decoration: underline; }
        .stats {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(200px, 1fr));
            gap: 20px;
            margin-bottom: 20px;
        }
        .stat-card {
            background: #161b22;
            border: 1px solid #30363d;
            border-radius: 6px;
            padding: 20px;
        }
        .stat-label { color: #8b949e; font-size: 13px; }
        .stat-value { font-size: 28px; font-weight: 600; color: #58a6ff; margin-top: 6px; }
        .grid {
            display: grid;
            grid-template-columns: repeat(auto-fit, minmax(400px, 1fr));
            gap: 20px;
            margin-bottom: 20px;
        }
        .card {
            background: #161b22;
            border: 1px solid #30363d;
            border-radius: 6px;
            padding: 20px;
        }
        .card h2 {
            font-size: 18px;
            margin-bottom: 15px;
            color: #58a6ff;
            border-bottom: 1px solid #21262d;
            padding-bottom: 10px;
        }
        .metric-row {
            display: flex;
            justify-content: space-between;
            padding: 8px 0;
            border-bottom: 1px solid #21262d;
        }
        .metric-row:last-child { border-bottom: none; }
        .metric-label { color: #8b949e; font-size: 13px; }
        .metric-value { font-weight: 600; color: #58a6ff; }
        .badge {
            display: inline-block;
            padding: 2px 6px;
            margin-right: 4px;
            border-radius: 4px;
            font-size: 11px;
            background: #1f6feb;
            color: #fff;
        }
        .badge-deleted { background: #da3633; }
        .loading { text-align: center; padding: 40px; color: #6e7681; }
        .error { color: #da3633; }
        a.repo { color: #58a6ff; text-decoration: none; }
        a.repo:hover { text-decoration: underline; }
        .muted { color: #8b949e; }
        .btn {
            background: #21262d;
            border: 1px solid #30363d;
            color: #c9d1d9;
            padding: 8px 16px;
            border-radius: 4px;
            cursor: pointer;
            font-size: 13px;
            text-decoration: none;
        }
        .btn:hover { background: #30363d; border-color: #58a6ff; }
        .btn:disabled { opacity: 0.5; cursor: default; }
        .btn.active { border-color: #58a6ff; color: #58a6ff; }
        .header-controls {
            display: flex;
            justify-content: space-between;
            align-items: center;
            gap: 12px;
            margin-bottom: 20px;
        }
        input[type=search] {
            flex: 1;
            background: #0d1117;
            border: 1px solid #30363d;
            color: #c9d1d9;
            padding: 8px 12px;
            border-radius: 4px;
        }
        table { width: 100%; border-collapse: collapse; font-size: 13px; }
        th, td { padding: 8px; border-bottom: 1px solid #21262d; text-align: left; }
        th { color: #8b949e; cursor: pointer; user-select: none; }
        th.sorted { color: #58a6ff; }
        .pagination { display: flex; gap: 6px; justify-content: center; margin-top: 20px; }
        .summary { color: #6e7681; font-size: 12px; }
    </style>
"""

NAV = """
        <nav>
            <a href="/">Overview</a>
            <a href="/repositories">Repositories</a>
        </nav>
"""

OVERVIEW_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Dependents Dashboard</title>
""" + STYLE + """
</head>
<body>
    <div class="container">
        <h1>Dependents Dashboard</h1>
        <p class="subtitle">Repositories that build on the toolkit</p>
""" + NAV + """
        <div class="stats" id="statCards">
            <div class="stat-card loading">Loading...</div>
        </div>

        <div class="grid">
            <div class="card">
                <h2>Top Repositories by Stars</h2>
                <div id="topStars" class="loading">Loading...</div>
            </div>

            <div class="card">
                <h2>Sources</h2>
                <div id="sources" class="loading">Loading...</div>
            </div>
        </div>

        <div class="card">
            <h2>Top Owners</h2>
            <div id="topOwners" class="loading">Loading...</div>
        </div>
    </div>

    <script>
        function escapeHtml(value) {
            return String(value ?? '').replace(/[&<>"']/g, c => ({
                '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'
            }[c]));
        }

        function statCard(label, value) {
            return `
                <div class="stat-card">
                    <div class="stat-label">${label}</div>
                    <div class="stat-value">${Number(value).toLocaleString()}</div>
                </div>
            `;
        }

        async function loadStats() {
            try {
                const resp = await fetch('/api/repositories/stats');
                if (!resp.ok) throw new Error(resp.statusText);
                const data = await resp.json();

                document.getElementById('statCards').innerHTML =
                    statCard('Total Repositories', data.total_repos) +
                    statCard('Total Stars', data.totals.total_stars) +
                    statCard('Total Forks', data.totals.total_forks) +
                    statCard('New (last 7 days)', data.recent_repos);

                let html = '';
                for (const repo of data.top_stars) {
                    html += `
                        <div class="metric-row">
                            <a class="repo" href="${escapeHtml(repo.url)}" target="_blank">${escapeHtml(repo.full_name)}</a>
                            <span class="metric-value">★ ${repo.stars}</span>
                        </div>
                    `;
                }
                document.getElementById('topStars').innerHTML = html || 'No repositories yet';

                html = '';
                for (const row of data.source_stats) {
                    const pct = data.total_repos ? (row.count / data.total_repos * 100).toFixed(1) : '0.0';
                    html += `
                        <div class="metric-row">
                            <span class="metric-label">${escapeHtml(row.source)}</span>
                            <span class="metric-value">${row.count} (${pct}%)</span>
                        </div>
                    `;
                }
                document.getElementById('sources').innerHTML = html || 'No sources yet';

                html = '';
                for (const owner of data.top_owners) {
                    const avg = owner.repo_count ? (owner.total_stars / owner.repo_count).toFixed(1) : '0.0';
                    html += `
                        <div class="metric-row">
                            <span class="metric-label">${escapeHtml(owner.owner)}</span>
                            <span class="metric-value">${owner.repo_count} repos, ${owner.total_stars} stars (avg ${avg})</span>
                        </div>
                    `;
                }
                document.getElementById('topOwners').innerHTML = html || 'No owners yet';
            } catch (e) {
                document.getElementById('statCards').innerHTML =
                    '<div class="error">Error loading statistics</div>';
            }
        }

        loadStats();
    </script>
</body>
</html>
"""

REPOSITORIES_HTML = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Repositories</title>
""" + STYLE + """
</head>
<body>
    <div class="container">
        <h1>Repositories</h1>
        <p class="subtitle" id="summary">Loading...</p>
""" + NAV + """
        <div class="header-controls">
            <input type="search" id="search" placeholder="Search by name or owner...">
            <a class="btn" href="/api/repositories/export">⬇ Export CSV</a>
        </div>

        <div class="card">
            <table>
                <thead>
                    <tr>
                        <th data-field="name">Repository</th>
                        <th data-field="owner">Owner</th>
                        <th data-field="stars">Stars</th>
                        <th data-field="forks">Forks</th>
                        <th>Homepage</th>
                        <th>Sources</th>
                        <th data-field="created_at">Created</th>
                        <th data-field="updated_at">Updated</th>
                        <th data-field="last_seen">Last Seen</th>
                    </tr>
                </thead>
                <tbody id="rows">
                    <tr><td colspan="9" class="loading">Loading...</td></tr>
                </tbody>
            </table>
        </div>

        <div class="pagination" id="pagination"></div>
    </div>

    <script>
        const state = { page: 1, limit: 30, sortBy: 'stars', sortOrder: 'desc', search: '' };

        function escapeHtml(value) {
            return String(value ?? '').replace(/[&<>"']/g, c => ({
                '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'
            }[c]));
        }

        function formatDate(value) {
            return value ? new Date(value).toLocaleDateString() : '';
        }

        function pageWindow(current, total) {
            const start = Math.max(1, Math.min(current - 2, total - 4));
            const end = Math.min(total, start + 4);
            const pages = [];
            for (let p = start; p <= end; p++) pages.push(p);
            return pages;
        }

        function renderPagination(pagination) {
            const el = document.getElementById('pagination');
            if (pagination.total_pages <= 1) {
                el.innerHTML = '';
                return;
            }
            let html = `<button class="btn" data-page="${pagination.current_page - 1}" ${pagination.has_prev ? '' : 'disabled'}>Prev</button>`;
            for (const p of pageWindow(pagination.current_page, pagination.total_pages)) {
                html += `<button class="btn ${p === pagination.current_page ? 'active' : ''}" data-page="${p}">${p}</button>`;
            }
            html += `<button class="btn" data-page="${pagination.current_page + 1}" ${pagination.has_next ? '' : 'disabled'}>Next</button>`;
            el.innerHTML = html;
        }

        function renderHeaders() {
            for (const th of document.querySelectorAll('th[data-field]')) {
                const active = th.dataset.field === state.sortBy;
                th.classList.toggle('sorted', active);
                th.textContent = th.textContent.replace(/ [▲▼]$/, '') + (active ? (state.sortOrder === 'asc' ? ' ▲' : ' ▼') : '');
            }
        }

        async function loadRepositories() {
            const params = new URLSearchParams({
                page: state.page,
                limit: state.limit,
                sort_by: state.sortBy,
                sort_order: state.sortOrder,
                search: state.search
            });
            try {
                const resp = await fetch(`/api/repositories?${params}`);
                if (!resp.ok) throw new Error(resp.statusText);
                const data = await resp.json();

                let html = '';
                for (const repo of data.repositories) {
                    const sources = repo.source.map(s => `<span class="badge">${escapeHtml(s)}</span>`).join('');
                    const deleted = repo.deleted_at ? '<span class="badge badge-deleted">deleted</span>' : '';
                    const homepage = repo.homepage
                        ? `<a class="repo" href="${escapeHtml(repo.homepage)}" target="_blank">${escapeHtml(repo.homepage)}</a>`
                        : '<span class="muted">No homepage</span>';
                    html += `
                        <tr>
                            <td><a class="repo" href="${escapeHtml(repo.url)}" target="_blank">${escapeHtml(repo.name)}</a> ${deleted}</td>
                            <td>${escapeHtml(repo.owner)}</td>
                            <td>${repo.stars}</td>
                            <td>${repo.forks}</td>
                            <td>${homepage}</td>
                            <td>${sources}</td>
                            <td>${formatDate(repo.created_at)}</td>
                            <td>${formatDate(repo.updated_at)}</td>
                            <td>${formatDate(repo.last_seen)}</td>
                        </tr>
                    `;
                }
                document.getElementById('rows').innerHTML =
                    html || '<tr><td colspan="9" class="loading">No repositories found</td></tr>';
                document.getElementById('summary').textContent =
                    `${data.pagination.total_count} repositories` + (data.search ? ` matching "${data.search}"` : '');
                renderPagination(data.pagination);
                renderHeaders();
            } catch (e) {
                document.getElementById('rows').innerHTML =
                    '<tr><td colspan="9" class="error">Error loading repositories</td></tr>';
            }
        }

        document.querySelectorAll('th[data-field]').forEach(th => {
            th.addEventListener('click', () => {
                if (state.sortBy === th.dataset.field) {
                    state.sortOrder = state.sortOrder === 'asc' ? 'desc' : 'asc';
                } else {
                    state.sortBy = th.dataset.field;
                    state.sortOrder = 'desc';
                }
                state.page = 1;
                loadRepositories();
            });
        });

        document.getElementById('pagination').addEventListener('click', e => {
            const page = e.target.dataset.page;
            if (page && !e.target.disabled) {
                state.page = Number(page);
                loadRepositories();
            }
        });

        let searchTimer = null;
        document.getElementById('search').addEventListener('input', e => {
            clearTimeout(searchTimer);
            searchTimer = setTimeout(() => {
                state.search = e.target.value.trim();
                state.page = 1;
                loadRepositories();
            }, 300);
        });

        loadRepositories();
    </script>
</body>
</html>
"""
