# PMX planner: board, calendar, budget state and the API glue around them
#
# Components:
#   schema.py     - Value objects (Task, CalendarEvent, BudgetItem, WbsPhase, Risk, ProjectRecord)
#   clock.py      - Injectable wall clock and id generation
#   board.py      - Three-column task board (todo / inprogress / done)
#   calendar.py   - Month grid builder and date-key helpers
#   schedule.py   - Dated, colored event list
#   budget.py     - Planned vs actual ledger with derived totals
#   wbs.py        - Static WBS/Gantt fallbacks and Gantt bar layout
#   decoder.py    - Defensive decoding of generator (LLM) JSON
#   autosave.py   - Debounced save scheduler
#   session.py    - One open project: stores + autosave pipeline
#   dashboard.py  - Portfolio statistics across saved projects
#   prefs.py      - Local state file (theme, notes scratchpad, wbs-added)
#   store.py      - SQLite project and notes persistence
#   llm.py        - Gemini REST client with retry on overload
#   generator.py  - Charter / risks / plan generation, PDF extraction, chat
#   config.py     - YAML + environment configuration
