"""Reply generation, emotion labelling and speech I/O coordination."""
