"""Personal Finance Dashboard backend.

Scripts and modules for importing bank transactions (CSV files or Plaid),
categorizing them, spotting recurring charges and producing savings
insights.  See ``api_server.py`` and ``process_transactions.py`` for entry
points.
"""
