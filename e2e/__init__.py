"""
X402 E2E conformance harness

Runs every discovered client implementation against every discovered server
implementation across the supported facilitator/network combinations:
- servers/<name>/test.config.json: server manifest and launcher
- clients/<name>/test.config.json: client manifest and launcher

Required environment:
- SERVER_ADDRESS: payment recipient passed to servers
- CLIENT_PRIVATE_KEY: key clients pay with
- SERVER_PORT: optional, defaults to 4021

Run:
    x402-e2e --help
"""
