"""Provider packages. Each one ships a kind table, projections and collection templates."""
