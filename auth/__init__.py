"""auth/ -- Authentication and authorization core for Surfer.

Components (leaves first):
  tokens.CredentialService   -- signed session credentials
  state.StateTracker         -- single-use OAuth correlation tokens + reaper
  oauth.IdentityExchanger    -- Google authorization-code exchange
  dependencies               -- request gate and role gate
  lifecycle.AccountService   -- pending/approved/rejected account lifecycle

Layer rule: auth/ imports only core/ + third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way around.
"""
