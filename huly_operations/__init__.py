"""Operations that resolve human-readable names and call the Huly platform."""
