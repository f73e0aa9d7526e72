"""Client library for the MasDeporte sports-club booking backend."""
