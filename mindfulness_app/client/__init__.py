"""
The `client` package is the companion side of the service: the state a
browser session would keep locally, and the logic that runs next to it.

Contents
--------
- storage
    Key-value store (in memory or a JSON file) and one repository per key family
- auth_context
    Resolves and follows the signed-in user, with a single refresh fallback
- chat
    Serialised chat sends with bounded retries and session logging
- timer
    Exercise countdown state machine and the breathing guide
"""
