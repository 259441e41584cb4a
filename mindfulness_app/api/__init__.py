"""
The `api` package defines the service's HTTP interface, along with its
request middleware, provider clients and data models.

It integrates FastAPI routing, the Auth0 sign-in flow with a signed session
cookie, and thin proxies to OpenRouter and AssemblyAI so provider keys never
reach the browser.

Contents
--------
- fast_api
    Defines the FastAPI router with endpoints for:
        * Sign-in callbacks, sign-out, current user and session refresh
        * Profile, mood tracker, exercises, history and chat sessions
        * The dashboard summary

- ai_routes
    Proxy endpoints for chat completions, the OpenRouter key check and
    audio transcription

- session_gate
    Middleware that resolves the session once per request and redirects
    between protected screens and the login page

- models
    Pydantic schemas for request/response validation

- utils
    JWT utilities:
        * `create_access_token` issues signed session tokens with expiration
        * `verify_token` validates them and returns the claims
        * `create_state` / `read_state` carry the post-login path through OAuth

- auth0
    Auth0 authorize URL, code exchange and user profile fetch

- llm_client
    OpenRouter chat completions (OpenAI SDK) and LangChain exercise generation

- transcription
    AssemblyAI transcription with temporary-file cleanup
"""
