"""
esports-arb: live League of Legends event arbitrage against Polymarket.

Layers:
  pandascore/    Live match + event feed client and payload normalization
  polymarket/    Market lookup (Gamma), pricing (CLOB), paper venue
  engine/        Event impact model, win probability, trigger dispatch
  strategies/    Opportunity detection
  bot/           Store, daily ledger, trade lifecycle, match supervisor
  domains/       Game-specific wiring and CLI (lol)
  mcp/           Read-only MCP status server
"""
