"""Drop sniper: watch reservation drops, book at T0, track resale transfers."""
