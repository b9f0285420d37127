"""External collaborators: commands, terminal, AUR RPC, pacman, review, sandbox."""
