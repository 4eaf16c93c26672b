"""
LLM Chess Arena package.

Components:
- retry: linear backoff retry primitive (provider retries and invalid-move strikes)
- prompting/move_validator: move-suggestion prompt build and reply normalization
- llm_client/providers: move-suggestion service over OpenRouter (OpenAI-compatible wire format)
- referee: rules-engine adapter around python-chess
- game: match orchestrator state machine
- registry/server/play_one: in-memory match registry, Flask API and CLI
"""
# Package exports are intentionally minimal; import modules directly as needed.
