"""MycoTrack: mushroom production batch tracking backend."""
