"""Domain services. Transport handlers only talk to these."""
